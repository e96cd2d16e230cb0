# cycle_ledger.py — cycle grouping + realized-vs-planned reconciliation
#
# Carry rules:
# - Past cycle beats its goal  -> shows the goal, surplus carries into the next cycle
# - Past cycle misses its goal -> shows what it made (loss included), carry resets to 0
# - Active cycle               -> shows everything it has (incl. inherited carry), carries nothing
#
# Losses are never carried forward as debt, and the ladder itself is never
# adjusted by real results.
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ladder import PlannedStep, ladder_for
from models import ZERO, Outcome, Project, Wager

CycleGroups = Dict[int, List[Wager]]


@dataclass(frozen=True)
class CycleLedgerEntry:
    index: int
    raw_profit: Decimal
    incoming_carry: Decimal
    display_profit: Decimal
    outgoing_carry: Decimal
    met_goal: bool
    planned_goal: Decimal
    wager_count: int = 0
    is_active: bool = False

    @property
    def progress_pct(self) -> Decimal:
        """Share of the goal reached by display_profit, clamped to [0, 100]."""
        if self.planned_goal <= 0:
            return ZERO
        pct = self.display_profit / self.planned_goal * 100
        return max(ZERO, min(Decimal(100), pct))


@dataclass(frozen=True)
class LedgerView:
    """Everything a project page needs, derived from one snapshot."""
    steps: List[PlannedStep]
    groups: CycleGroups
    entries: List[CycleLedgerEntry]

    @property
    def active_entry(self) -> Optional[CycleLedgerEntry]:
        return self.entries[-1] if self.entries else None


def assign_cycles(wagers: Iterable[Wager], active_cycle_index: int) -> CycleGroups:
    """
    Group wagers by their stored cycle index (unset -> 0).

    Every index 0..active_cycle_index is present even when empty; indices above
    the active one are kept if wagers reference them. Each group is ordered by
    date; wagers sharing a timestamp have no guaranteed order.
    """
    active = max(0, int(active_cycle_index))
    groups: CycleGroups = {i: [] for i in range(active + 1)}

    for w in wagers:
        groups.setdefault(w.cycle, []).append(w)

    for bucket in groups.values():
        bucket.sort(key=lambda w: w.date)

    return {i: groups[i] for i in sorted(groups)}


def reconcile(
    steps: Sequence[PlannedStep],
    groups: Mapping[int, Sequence[Wager]],
    active_cycle_index: int,
) -> List[CycleLedgerEntry]:
    """
    One CycleLedgerEntry per cycle 0..active_cycle_index.

    PENDING wagers contribute their stored profit (0 until settled).
    Raises ValueError when the ladder does not reach the active cycle.
    """
    active = int(active_cycle_index)
    if active < 0:
        raise ValueError(f"active_cycle_index must be >= 0, got {active_cycle_index!r}")
    if len(steps) <= active:
        raise ValueError(
            f"ladder has {len(steps)} steps but cycle {active} is active; build it with min_steps_covered={active}"
        )

    entries: List[CycleLedgerEntry] = []
    carry = ZERO

    for i in range(active + 1):
        cycle_wagers = groups.get(i) or ()
        raw = sum((w.profit for w in cycle_wagers), ZERO)
        goal = steps[i].planned_goal
        available = raw + carry

        if i < active:
            if available > goal:
                display, outgoing = goal, available - goal
            else:
                display, outgoing = available, ZERO
        else:
            display, outgoing = available, ZERO

        entries.append(
            CycleLedgerEntry(
                index=i,
                raw_profit=raw,
                incoming_carry=carry,
                display_profit=display,
                outgoing_carry=outgoing,
                met_goal=available >= goal,
                planned_goal=goal,
                wager_count=len(cycle_wagers),
                is_active=(i == active),
            )
        )
        carry = outgoing

    return entries


def build_ledger(project: Project, wagers: Iterable[Wager]) -> LedgerView:
    """Ladder + assignment + reconciliation for one project snapshot."""
    steps = ladder_for(project)
    groups = assign_cycles(wagers, project.active_cycle_index)
    entries = reconcile(steps, groups, project.active_cycle_index)
    return LedgerView(steps=steps, groups=groups, entries=entries)


def cycle_detail_rows(
    steps: Sequence[PlannedStep],
    groups: Mapping[int, Sequence[Wager]],
    index: int,
    start_bankroll: Optional[Decimal] = None,
) -> List[Dict[str, object]]:
    """
    Per-wager rows for one cycle, with the running bank measured from the
    cycle's planned starting bank.
    """
    if 0 <= index < len(steps):
        baseline = steps[index].bank_at_start
    else:
        baseline = start_bankroll if start_bankroll is not None else ZERO

    rows: List[Dict[str, object]] = []
    accumulated = ZERO
    for n, w in enumerate(groups.get(index) or (), start=1):
        accumulated += w.profit
        rows.append(
            {
                "n": n,
                "date": w.date,
                "event": w.event,
                "market": w.market,
                "stake": w.stake,
                "profit": w.profit,
                "profit_pct": (w.profit / w.stake * 100) if w.stake > 0 else ZERO,
                "running_bank": baseline + accumulated,
                "is_loss": w.outcome is Outcome.LOST,
            }
        )
    return rows
