# project_manager.py — multi-project orchestration with export/load helpers
from __future__ import annotations

import re
from dataclasses import replace
from datetime import tzinfo
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from cycle_ledger import LedgerView, build_ledger, cycle_detail_rows
from cycle_manager import AdvanceResult, advance, gate_status
from ladder import recommended_stake, stake_progress_pct
from models import Project, Wager, project_from_row, project_to_row, wager_from_row, wager_to_row

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _is_uuid(s: str) -> bool:
    return bool(_UUID_RE.match(str(s or "")))


def wagers_for_project(project: Project, wagers: Iterable[Wager]) -> List[Wager]:
    """Bets linked by project id or carrying the project's tag."""
    return [w for w in wagers if project.owns(w)]


class ProjectBundle:
    """
    One project: its snapshot, its wagers and the ledger derived from them.

    Pure logic: no Streamlit, no Supabase calls. The ledger is rebuilt
    lazily whenever the snapshot or the wager set is replaced.
    """
    def __init__(self, project: Project, wagers: Iterable[Wager] = (), tz: Optional[tzinfo] = None):
        self._project = project
        self._source: List[Wager] = list(wagers)
        self._wagers: List[Wager] = wagers_for_project(project, self._source)
        self._tz = tz
        self._ledger: Optional[LedgerView] = None

    # ---- snapshot ----
    @property
    def project(self) -> Project:
        return self._project

    @property
    def wagers(self) -> List[Wager]:
        return list(self._wagers)

    def replace_wagers(self, wagers: Iterable[Wager]) -> None:
        self._source = list(wagers)
        self._wagers = wagers_for_project(self._project, self._source)
        self._ledger = None

    def reconfigure(self, **changes: Any) -> None:
        """
        Swap config fields (bankroll, division, cap, name, tag).
        The cycle pointer is not a config field.
        """
        if "active_cycle_index" in changes:
            raise ValueError("active_cycle_index only changes through advance()")
        self._project = replace(self._project, **changes)
        # a new tag can change membership
        self._wagers = wagers_for_project(self._project, self._source)
        self._ledger = None

    # ---- derived ----
    def ledger(self) -> LedgerView:
        if self._ledger is None:
            self._ledger = build_ledger(self._project, self._wagers)
        return self._ledger

    def active_cycle_wagers(self) -> List[Wager]:
        return list(self.ledger().groups.get(self._project.active_cycle_index, []))

    def recommended_stake(self) -> Decimal:
        p = self._project
        return recommended_stake(self.ledger().steps, p.active_cycle_index, p.start_bankroll, p.bankroll_division)

    def stake_progress_pct(self) -> Decimal:
        return stake_progress_pct(self._project, self.ledger().steps)

    def gate(self) -> Dict[str, Any]:
        return gate_status(self.active_cycle_wagers(), self._tz)

    def cycle_details(self, index: int) -> List[Dict[str, object]]:
        view = self.ledger()
        return cycle_detail_rows(view.steps, view.groups, index, self._project.start_bankroll)

    def summary(self) -> Dict[str, Any]:
        """Card numbers for the projects list."""
        settled = [w for w in self._wagers if w.outcome.is_settled]
        total_profit = sum((w.profit for w in settled), Decimal("0"))
        start = self._project.start_bankroll
        return {
            "bet_count": len(self._wagers),
            "total_profit": total_profit,
            "current_bankroll": start + total_profit,
            "roi": total_profit / start * 100 if start > 0 else Decimal("0"),
            "recommended_stake": self.recommended_stake(),
            "progress_pct": self.stake_progress_pct(),
            "active_cycle": self._project.active_cycle_index,
        }

    # ---- transition ----
    def try_advance(self) -> AdvanceResult:
        """
        Run the gate on the active cycle. On acceptance the bundle holds the
        advanced snapshot; the caller still has to persist it.
        """
        result = advance(self._project, self.active_cycle_wagers(), self._tz)
        if result.accepted:
            self._project = result.project
            self._ledger = None
        return result

    def adopt_persisted(self, project: Project) -> None:
        """
        Take a snapshot re-read from the store (e.g. after losing an
        advancement race). Refuses to move the cycle pointer backwards.
        """
        if project.active_cycle_index < self._project.active_cycle_index:
            raise ValueError(
                f"stale snapshot: cycle {project.active_cycle_index} < {self._project.active_cycle_index}"
            )
        self._project = project
        self._wagers = wagers_for_project(project, self._source)
        self._ledger = None

    # ============================================================
    #  Persistence helpers
    # ============================================================
    def export_state(self) -> Dict[str, Any]:
        """
          {
            "project": {...project row..., "id", "active_cycle_index"},
            "wagers":  [ {...bet row...}, ... ],
          }
        """
        row = project_to_row(self._project)
        row["id"] = self._project.id
        row["active_cycle_index"] = self._project.active_cycle_index
        return {
            "project": row,
            "wagers": [dict(wager_to_row(w), id=w.id) for w in self._wagers],
        }

    @classmethod
    def from_state(cls, data: Dict[str, Any], tz: Optional[tzinfo] = None) -> "ProjectBundle":
        """Inverse of export_state(); unreadable wager rows are skipped."""
        if not isinstance(data, dict) or not isinstance(data.get("project"), dict):
            raise ValueError("bundle state needs a 'project' mapping")
        project = project_from_row(data["project"])
        wagers = []
        for raw in data.get("wagers") or []:
            if not isinstance(raw, dict):
                continue
            w = wager_from_row(raw)
            if w is not None:
                wagers.append(w)
        return cls(project, wagers, tz=tz)


class ProjectManager:
    """
    Holds every ProjectBundle of a user and the one the UI is bound to.

    In-memory only:
      • export_snapshot() gives a JSON-serializable view of all projects
      • load_snapshot() rebuilds everything from that view
    """
    def __init__(self, tz: Optional[tzinfo] = None):
        self._tz = tz
        self._bundles: Dict[str, ProjectBundle] = {}
        self._active_id: Optional[str] = None

    # ---- CRUD ----
    def load(self, projects: Iterable[Project], wagers: Iterable[Wager]) -> None:
        """Rebuild every bundle from fresh store reads."""
        wagers = list(wagers)
        bundles: Dict[str, ProjectBundle] = {}
        for p in projects:
            if not _is_uuid(p.id or ""):
                print(f"[ProjectManager.load] skipping project without UUID id: {p.id!r}")
                continue
            bundles[str(p.id)] = ProjectBundle(p, wagers, tz=self._tz)
        self._bundles = bundles
        if self._active_id not in self._bundles:
            self._active_id = next(iter(self._bundles), None)

    def add(self, project: Project, wagers: Iterable[Wager] = ()) -> ProjectBundle:
        pid = str(project.id or "")
        if not _is_uuid(pid):
            raise ValueError(f"ProjectManager.add() requires UUID project id, got: {project.id!r}")
        self._bundles[pid] = ProjectBundle(project, wagers, tz=self._tz)
        if self._active_id is None:
            self._active_id = pid
        return self._bundles[pid]

    def get(self, project_id: str) -> ProjectBundle:
        try:
            return self._bundles[str(project_id)]
        except KeyError:
            raise KeyError(f"unknown project id {project_id!r}") from None

    def remove(self, project_id: str) -> None:
        project_id = str(project_id)
        if project_id in self._bundles:
            del self._bundles[project_id]
            if self._active_id == project_id:
                self._active_id = self.all_ids()[0] if self._bundles else None

    def all_ids(self) -> List[str]:
        return list(self._bundles.keys())

    def refresh_wagers(self, wagers: Iterable[Wager]) -> None:
        """New bet list from the store: every bundle re-filters it."""
        wagers = list(wagers)
        for b in self._bundles.values():
            b.replace_wagers(wagers)

    # ---- Active binding ----
    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def set_active(self, project_id: str) -> None:
        project_id = str(project_id)
        if not _is_uuid(project_id):
            raise ValueError(f"ProjectManager.set_active() requires UUID project id, got: {project_id!r}")
        if project_id not in self._bundles:
            raise KeyError(f"unknown project id {project_id!r}")
        self._active_id = project_id

    def get_active(self) -> ProjectBundle:
        if self._active_id and self._active_id in self._bundles:
            return self._bundles[self._active_id]
        if self._bundles:
            self._active_id = next(iter(self._bundles))
            return self._bundles[self._active_id]
        raise RuntimeError("ProjectManager has no projects. Load them from the store before calling get_active().")

    # ============================================================
    #  Snapshot helpers
    # ============================================================
    def export_snapshot(self) -> Dict[str, Any]:
        """
          {
            "active_id": "<uuid>",
            "projects": { "<uuid>": { ... ProjectBundle.export_state() ... }, ... }
          }
        """
        return {
            "active_id": self._active_id,
            "projects": {pid: b.export_state() for pid, b in self._bundles.items()},
        }

    def load_snapshot(self, snap: Dict[str, Any]) -> None:
        if not isinstance(snap, dict):
            return

        raw = snap.get("projects") or {}
        self._bundles = {}
        if isinstance(raw, dict):
            for pid, pdata in raw.items():
                if not _is_uuid(pid):
                    continue
                try:
                    self._bundles[str(pid)] = ProjectBundle.from_state(pdata, tz=self._tz)
                except ValueError as e:
                    # skip a corrupt project instead of killing the whole load
                    print(f"[ProjectManager.load_snapshot] skipping project {pid}: {e!r}")

        active = snap.get("active_id")
        active = str(active) if active is not None else None
        if active and active in self._bundles:
            self._active_id = active
        else:
            self._active_id = next(iter(self._bundles), None)
