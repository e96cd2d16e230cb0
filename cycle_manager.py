from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, Optional, Set

from models import Project, Wager

# ----------------------------- Tunables -----------------------------

MIN_ACTIVE_DAYS = 10     # distinct betting days required to close a cycle

REASON_ADVANCED = "advanced"
REASON_INSUFFICIENT_ACTIVITY = "insufficient_activity"


# ----------------------------- Result -----------------------------


@dataclass(frozen=True)
class AdvanceResult:
    accepted: bool
    project: Project
    distinct_days: int
    reason: str = ""

    @property
    def closed_cycle(self) -> Optional[int]:
        """Index of the cycle that was just closed, if any."""
        return self.project.active_cycle_index - 1 if self.accepted else None


# ----------------------------- Gate -----------------------------


def _day_key(ts: datetime, tz: Optional[tzinfo]) -> str:
    if tz is not None and ts.tzinfo is not None:
        ts = ts.astimezone(tz)
    return ts.strftime("%Y-%m-%d")


def distinct_days(wagers: Iterable[Wager], tz: Optional[tzinfo] = None) -> int:
    """
    Number of different calendar days with at least one wager.
    With tz, timestamps are converted first so late-night bets land on the
    user's own calendar day.
    """
    days: Set[str] = {_day_key(w.date, tz) for w in wagers}
    return len(days)


def can_advance(cycle_wagers: Iterable[Wager], tz: Optional[tzinfo] = None) -> bool:
    return distinct_days(cycle_wagers, tz) >= MIN_ACTIVE_DAYS


def advance(project: Project, cycle_wagers: Iterable[Wager], tz: Optional[tzinfo] = None) -> AdvanceResult:
    """
    Close the active cycle and open the next one.

    The only transition of Project.active_cycle_index: +1 on acceptance,
    nothing else changes. A denied gate is a normal result
    (accepted=False, same project back), never an exception.
    Past ledger entries are not touched; reconcile() recomputes them from the
    returned snapshot.
    """
    days = distinct_days(cycle_wagers, tz)
    if days < MIN_ACTIVE_DAYS:
        return AdvanceResult(
            accepted=False,
            project=project,
            distinct_days=days,
            reason=REASON_INSUFFICIENT_ACTIVITY,
        )

    nxt = replace(project, active_cycle_index=project.active_cycle_index + 1)
    return AdvanceResult(accepted=True, project=nxt, distinct_days=days, reason=REASON_ADVANCED)


def gate_status(cycle_wagers: Iterable[Wager], tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """
    Gate snapshot for the "close cycle" control, e.g.
    {"days": 7, "required": 10, "remaining": 3, "can_advance": False, "label": "7/10 days"}
    """
    days = distinct_days(cycle_wagers, tz)
    return {
        "days": days,
        "required": MIN_ACTIVE_DAYS,
        "remaining": max(0, MIN_ACTIVE_DAYS - days),
        "can_advance": days >= MIN_ACTIVE_DAYS,
        "label": f"{days}/{MIN_ACTIVE_DAYS} days",
    }
