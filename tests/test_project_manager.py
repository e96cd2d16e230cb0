"""ProjectBundle / ProjectManager orchestration tests."""

import unittest
import uuid
from decimal import Decimal

from project_manager import ProjectBundle, ProjectManager, wagers_for_project
from tests.helpers import D, OTHER_PROJECT_ID, PROJECT_ID, project, wager, wagers_on_days


def _linked(profit, **kw):
    return wager(profit, project_id=PROJECT_ID, **kw)


class TestProjectBundle(unittest.TestCase):

    def test_only_member_wagers_are_kept(self):
        ws = [_linked(5), wager(3, project_id=OTHER_PROJECT_ID), wager(2, tags=("bz",))]
        bundle = ProjectBundle(project(tag="BZ"), ws)
        self.assertEqual(len(bundle.wagers), 2)
        self.assertEqual(len(wagers_for_project(project(), ws)), 1)

    def test_summary_numbers(self):
        bundle = ProjectBundle(project(cap="20", active=2), [_linked(30, cycle=0), _linked(-5, day=1, cycle=1)])
        s = bundle.summary()
        self.assertEqual(s["bet_count"], 2)
        self.assertEqual(s["total_profit"], D("25"))
        self.assertEqual(s["current_bankroll"], D("125"))
        self.assertEqual(s["roi"], D("25"))
        self.assertEqual(s["recommended_stake"], D("15.625"))
        self.assertEqual(s["progress_pct"], D("56.25"))

    def test_ledger_is_cached_until_inputs_change(self):
        bundle = ProjectBundle(project(), [_linked(10)])
        first = bundle.ledger()
        self.assertIs(bundle.ledger(), first)
        bundle.replace_wagers([_linked(10), _linked(4, day=1)])
        self.assertIsNot(bundle.ledger(), first)
        self.assertEqual(bundle.ledger().active_entry.raw_profit, D("14"))

    def test_try_advance_denied(self):
        bundle = ProjectBundle(project(), [_linked(1, day=d) for d in range(4)])
        result = bundle.try_advance()
        self.assertFalse(result.accepted)
        self.assertEqual(bundle.project.active_cycle_index, 0)
        self.assertEqual(bundle.gate()["label"], "4/10 days")

    def test_try_advance_accepted_rebuilds_ledger(self):
        ws = [_linked(3, day=d, cycle=0) for d in range(10)]
        bundle = ProjectBundle(project(), ws)
        self.assertEqual(bundle.ledger().entries[0].display_profit, D("30"))

        result = bundle.try_advance()
        self.assertTrue(result.accepted)
        self.assertEqual(bundle.project.active_cycle_index, 1)
        entries = bundle.ledger().entries
        self.assertEqual(entries[0].display_profit, D("25"))
        self.assertEqual(entries[1].incoming_carry, D("5"))
        self.assertEqual(bundle.active_cycle_wagers(), [])

    def test_reconfigure_cannot_touch_cycle_pointer(self):
        bundle = ProjectBundle(project(), [])
        with self.assertRaises(ValueError):
            bundle.reconfigure(active_cycle_index=3)

    def test_reconfigure_tag_changes_membership(self):
        ws = [wager(2, tags=("new",))]
        bundle = ProjectBundle(project(tag="old"), ws)
        self.assertEqual(bundle.wagers, [])
        bundle.reconfigure(tag="new", bankroll_division=5)
        self.assertEqual(len(bundle.wagers), 1)
        self.assertEqual(bundle.ledger().steps[0].planned_stake, D("20"))

    def test_adopt_persisted_refuses_going_back(self):
        bundle = ProjectBundle(project(active=3), [])
        with self.assertRaises(ValueError):
            bundle.adopt_persisted(project(active=2))
        bundle.adopt_persisted(project(active=4))
        self.assertEqual(bundle.project.active_cycle_index, 4)

    def test_cycle_details(self):
        bundle = ProjectBundle(project(), [_linked(5), _linked(-1, day=1)])
        rows = bundle.cycle_details(0)
        self.assertEqual([r["running_bank"] for r in rows], [D("105"), D("104")])

    def test_export_and_restore(self):
        bundle = ProjectBundle(project(cap="20", active=1, name="BZ"), [_linked(5, cycle=0), _linked(2, day=1, cycle=1)])
        restored = ProjectBundle.from_state(bundle.export_state())
        self.assertEqual(restored.project.active_cycle_index, 1)
        self.assertEqual(restored.project.stake_goal_cap, D("20"))
        self.assertEqual(restored.ledger().entries, bundle.ledger().entries)

    def test_from_state_requires_project(self):
        with self.assertRaises(ValueError):
            ProjectBundle.from_state({"wagers": []})


class TestProjectManager(unittest.TestCase):

    def test_load_binds_first_project(self):
        mgr = ProjectManager()
        mgr.load([project(), project(id=OTHER_PROJECT_ID, start="50")], [_linked(1)])
        self.assertEqual(mgr.active_id, PROJECT_ID)
        self.assertEqual(mgr.all_ids(), [PROJECT_ID, OTHER_PROJECT_ID])
        self.assertEqual(len(mgr.get_active().wagers), 1)

    def test_non_uuid_ids_rejected(self):
        mgr = ProjectManager()
        with self.assertRaises(ValueError):
            mgr.add(project(id="Project 1"))
        mgr.load([project(id="nope")], [])
        self.assertEqual(mgr.all_ids(), [])

    def test_get_active_without_projects(self):
        with self.assertRaises(RuntimeError):
            ProjectManager().get_active()

    def test_set_active_and_remove(self):
        mgr = ProjectManager()
        mgr.add(project())
        mgr.add(project(id=OTHER_PROJECT_ID))
        mgr.set_active(OTHER_PROJECT_ID)
        self.assertEqual(mgr.active_id, OTHER_PROJECT_ID)
        mgr.remove(OTHER_PROJECT_ID)
        self.assertEqual(mgr.active_id, PROJECT_ID)
        with self.assertRaises(KeyError):
            mgr.set_active(OTHER_PROJECT_ID)

    def test_remove_accepts_uuid_objects(self):
        mgr = ProjectManager()
        mgr.add(project())
        mgr.remove(uuid.UUID(PROJECT_ID))
        self.assertEqual(mgr.all_ids(), [])
        self.assertIsNone(mgr.active_id)

    def test_refresh_wagers_reaches_every_bundle(self):
        mgr = ProjectManager()
        mgr.add(project())
        mgr.refresh_wagers(wagers_on_days(3) + [_linked(7)])
        self.assertEqual(mgr.get(PROJECT_ID).ledger().active_entry.raw_profit, D("7"))

    def test_snapshot_round_trip(self):
        mgr = ProjectManager()
        mgr.load([project(active=1), project(id=OTHER_PROJECT_ID)], [_linked(5, cycle=0)])
        mgr.set_active(OTHER_PROJECT_ID)

        snap = mgr.export_snapshot()
        other = ProjectManager()
        other.load_snapshot(snap)

        self.assertEqual(other.active_id, OTHER_PROJECT_ID)
        self.assertEqual(other.get(PROJECT_ID).project.active_cycle_index, 1)
        self.assertEqual(other.get(PROJECT_ID).ledger().entries[0].raw_profit, Decimal("5"))

    def test_corrupt_snapshot_entries_skipped(self):
        mgr = ProjectManager()
        mgr.load_snapshot({"active_id": PROJECT_ID, "projects": {PROJECT_ID: {"nope": 1}}})
        self.assertEqual(mgr.all_ids(), [])
        self.assertIsNone(mgr.active_id)


if __name__ == "__main__":
    unittest.main(verbosity=2)
