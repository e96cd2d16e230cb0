"""
Property-based tests for the ladder, the reconciliation and the gate.

These use hypothesis to throw arbitrary bankrolls, divisions, caps and
wager histories at the pure core.
"""

import unittest
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from cycle_ledger import assign_cycles, reconcile
from cycle_manager import MIN_ACTIVE_DAYS, advance, can_advance
from ladder import GOAL_MULTIPLIER, build_ladder
from tests.helpers import project, wager

# Decimal context rounding (28 digits) on non-terminating divisions
TOLERANCE = Decimal("1e-12")

bankrolls = st.decimals(min_value=Decimal("1"), max_value=Decimal("100000"), places=2)
divisions = st.integers(min_value=1, max_value=20)
cap_multipliers = st.decimals(min_value=Decimal("0.5"), max_value=Decimal("10"), places=2)
profits = st.decimals(min_value=Decimal("-100"), max_value=Decimal("100"), places=2)


@st.composite
def histories(draw):
    """(start, division, active index, [(profit, cycle), ...])"""
    start = draw(bankrolls)
    division = draw(divisions)
    active = draw(st.integers(min_value=0, max_value=8))
    rows = draw(
        st.lists(
            st.tuples(profits, st.integers(min_value=0, max_value=active + 2)),
            max_size=40,
        )
    )
    return start, division, active, rows


def _entries(start, division, active, rows):
    ws = [wager(p, day=i, cycle=c) for i, (p, c) in enumerate(rows)]
    steps = build_ladder(start, division, min_steps_covered=active)
    return reconcile(steps, assign_cycles(ws, active), active)


class TestLadderProperties(unittest.TestCase):

    @given(bankrolls, divisions)
    @settings(max_examples=100)
    def test_bank_never_decreases(self, start, division):
        steps = build_ladder(start, division)
        for prev, nxt in zip(steps, steps[1:]):
            self.assertGreaterEqual(nxt.bank_at_start, prev.bank_at_start)

    @given(bankrolls, divisions, cap_multipliers)
    @settings(max_examples=100)
    def test_capped_ladder_respects_cap(self, start, division, k):
        cap = start / division * k
        steps = build_ladder(start, division, cap)
        for s in steps:
            self.assertLessEqual(s.planned_stake, cap)
            self.assertEqual(s.planned_goal, s.planned_stake * GOAL_MULTIPLIER)
        self.assertEqual(steps[-1].planned_stake, cap)

    @given(bankrolls, divisions, st.integers(min_value=0, max_value=60))
    @settings(max_examples=50)
    def test_uncapped_ladder_covers_active_step(self, start, division, covered):
        steps = build_ladder(start, division, min_steps_covered=covered)
        self.assertGreater(len(steps), covered)
        self.assertGreaterEqual(len(steps), 20)


class TestReconcileProperties(unittest.TestCase):

    @given(histories())
    @settings(max_examples=100)
    def test_carry_is_never_negative(self, h):
        for e in _entries(*h):
            self.assertGreaterEqual(e.incoming_carry, 0)
            self.assertGreaterEqual(e.outgoing_carry, 0)

    @given(histories())
    @settings(max_examples=100)
    def test_profit_is_conserved(self, h):
        entries = _entries(*h)
        for e in entries:
            drift = e.display_profit - e.incoming_carry + e.outgoing_carry - e.raw_profit
            self.assertLessEqual(abs(drift), TOLERANCE)
        total = sum(e.display_profit for e in entries) - sum(e.raw_profit for e in entries)
        self.assertLessEqual(abs(total), TOLERANCE)

    @given(histories())
    @settings(max_examples=50)
    def test_past_cycles_never_show_more_than_goal(self, h):
        for e in _entries(*h)[:-1]:
            self.assertLessEqual(e.display_profit, e.planned_goal)

    @given(histories())
    @settings(max_examples=50)
    def test_active_cycle_carries_nothing(self, h):
        active = _entries(*h)[-1]
        self.assertTrue(active.is_active)
        self.assertEqual(active.outgoing_carry, 0)

    @given(histories())
    @settings(max_examples=50)
    def test_idempotent(self, h):
        self.assertEqual(_entries(*h), _entries(*h))


class TestGateProperties(unittest.TestCase):

    @given(st.lists(st.integers(min_value=0, max_value=30), max_size=60))
    @settings(max_examples=100)
    def test_gate_matches_distinct_day_count(self, days):
        ws = [wager(1, day=d) for d in days]
        self.assertEqual(can_advance(ws), len(set(days)) >= MIN_ACTIVE_DAYS)

    @given(st.lists(st.integers(min_value=0, max_value=30), max_size=60), st.integers(min_value=0, max_value=20))
    @settings(max_examples=50)
    def test_advance_moves_by_at_most_one(self, days, active):
        p = project(active=active)
        result = advance(p, [wager(1, day=d, cycle=active) for d in days])
        self.assertEqual(result.project.active_cycle_index - p.active_cycle_index, int(result.accepted))


if __name__ == "__main__":
    unittest.main()
