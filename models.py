# models.py — Project / Wager snapshots + row parsing for the bets store
#
# Everything here is immutable. The ledger never mutates a Project or a Wager;
# the only Project transition is cycle_manager.advance().
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

DEFAULT_BANKROLL_DIVISION = 10

ZERO = Decimal("0")


class Outcome(str, Enum):
    WON = "WON"
    LOST = "LOST"
    VOID = "VOID"
    PENDING = "PENDING"

    @classmethod
    def parse(cls, value: Any) -> "Outcome":
        if isinstance(value, Outcome):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return cls.PENDING

    @property
    def is_settled(self) -> bool:
        return self is not Outcome.PENDING


@dataclass(frozen=True)
class Project:
    """
    Snapshot of a goal-based compounding project.

    active_cycle_index is read-only: a project with a higher index can only be
    obtained from cycle_manager.advance().
    """
    start_bankroll: Decimal
    bankroll_division: int = DEFAULT_BANKROLL_DIVISION
    stake_goal_cap: Optional[Decimal] = None
    active_cycle_index: int = 0

    id: Optional[str] = None
    name: str = ""
    tag: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if int(self.active_cycle_index) < 0:
            raise ValueError(f"active_cycle_index must be >= 0, got {self.active_cycle_index!r}")

    @property
    def is_capped(self) -> bool:
        return self.stake_goal_cap is not None and self.stake_goal_cap > 0

    def owns(self, wager: "Wager") -> bool:
        """Explicit link by project id, or case-insensitive tag match."""
        if self.id and wager.project_id and str(wager.project_id) == str(self.id):
            return True
        if self.tag:
            wanted = self.tag.strip().lower()
            return any(t.strip().lower() == wanted for t in wager.tags)
        return False


@dataclass(frozen=True)
class Wager:
    profit: Decimal
    stake: Decimal
    date: datetime
    outcome: Outcome = Outcome.PENDING
    cycle_index: Optional[int] = None

    id: Optional[str] = None
    event: str = ""
    market: str = ""
    odds: Optional[Decimal] = None
    league: Optional[str] = None
    team: Optional[str] = None
    methodology: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)
    project_id: Optional[str] = None

    @property
    def cycle(self) -> int:
        """Cycle this wager is attributed to; unset means cycle 0."""
        return int(self.cycle_index) if self.cycle_index is not None else 0


# ============================================================
#  Row parsing (store rows -> snapshots)
# ============================================================

def to_decimal(x: Any, default: Decimal = ZERO) -> Decimal:
    """
    Lenient Decimal conversion; floats go through str() to avoid binary noise.
    NaN and infinities come back as default: they cannot be ordered.
    """
    if x is None:
        return default
    if isinstance(x, Decimal):
        d = x
    else:
        try:
            d = Decimal(str(x).strip().replace(",", "."))
        except (InvalidOperation, ValueError):
            return default
    return d if d.is_finite() else default


def _opt_decimal(x: Any) -> Optional[Decimal]:
    if x is None or x == "":
        return None
    return to_decimal(x)


def _opt_int(x: Any) -> Optional[int]:
    if x is None or x == "":
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


def _opt_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def parse_ts(value: Any) -> Optional[datetime]:
    """
    Parse timestamps coming back from the store.

    Accepts datetime, date, ISO strings with a trailing 'Z' and bare
    'YYYY-MM-DD'. Naive values are taken as UTC so every Wager.date compares.
    """
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, date):
        ts = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_tags(raw: Any) -> Tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, Iterable):
        return ()
    return tuple(str(t).strip() for t in raw if str(t or "").strip())


def project_from_row(row: Dict[str, Any]) -> Project:
    division = _opt_int(row.get("bankroll_division"))
    active = _opt_int(row.get("active_cycle_index")) or 0
    return Project(
        start_bankroll=to_decimal(row.get("start_bankroll")),
        bankroll_division=division if division is not None else DEFAULT_BANKROLL_DIVISION,
        stake_goal_cap=_opt_decimal(row.get("stake_goal")),
        active_cycle_index=max(0, active),
        id=_opt_str(row.get("id")),
        name=str(row.get("name") or ""),
        tag=_opt_str(row.get("tag")),
        created_at=parse_ts(row.get("created_at")),
    )


def project_to_row(project: Project) -> Dict[str, Any]:
    """Config columns only; active_cycle_index is written by db.persist_advance."""
    return {
        "name": project.name,
        "tag": project.tag,
        "start_bankroll": str(project.start_bankroll),
        "bankroll_division": int(project.bankroll_division),
        "stake_goal": str(project.stake_goal_cap) if project.stake_goal_cap is not None else None,
    }


def wager_from_row(row: Dict[str, Any]) -> Optional[Wager]:
    """Returns None for rows without a usable date."""
    ts = parse_ts(row.get("date"))
    if ts is None:
        return None
    return Wager(
        profit=to_decimal(row.get("profit")),
        stake=to_decimal(row.get("stake")),
        date=ts,
        outcome=Outcome.parse(row.get("status")),
        cycle_index=_opt_int(row.get("cycle_index")),
        id=_opt_str(row.get("id")),
        event=str(row.get("event") or ""),
        market=str(row.get("market") or ""),
        odds=_opt_decimal(row.get("odds")),
        league=_opt_str(row.get("league")),
        team=_opt_str(row.get("team")),
        methodology=_opt_str(row.get("methodology")),
        tags=_parse_tags(row.get("tags")),
        project_id=_opt_str(row.get("project_id")),
    )


def wager_to_row(wager: Wager) -> Dict[str, Any]:
    return {
        "date": wager.date.isoformat(),
        "event": wager.event,
        "market": wager.market,
        "odds": str(wager.odds) if wager.odds is not None else None,
        "stake": str(wager.stake),
        "profit": str(wager.profit),
        "status": wager.outcome.value,
        "methodology": wager.methodology,
        "league": wager.league,
        "team": wager.team,
        "tags": list(wager.tags),
        "cycle_index": wager.cycle_index,
        "project_id": wager.project_id,
    }
