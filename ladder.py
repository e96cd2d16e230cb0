# ladder.py — theoretical stake / bankroll / goal ladder for goal-based projects
#
# LOCKED PARAMETERS:
# - Stake per step = bank / division
# - Step goal = stake × 2.5
# - Next bank = bank + goal (the plan never looks at real results)
# - Stake cap: once stake >= cap, stake is held at cap for every later step
# - Uncapped ladders show at least 20 rows and 5 rows past the covered step
# - Hard ceiling: 100 steps
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from models import DEFAULT_BANKROLL_DIVISION, ZERO, Project

# ============================================================
# TUNABLES
# ============================================================
GOAL_MULTIPLIER: Decimal = Decimal("2.5")
MAX_LADDER_STEPS: int = 100
UNCAPPED_MIN_STEPS: int = 20
UNCAPPED_LOOKAHEAD: int = 5


class LadderConfigError(RuntimeError):
    """The ladder could not terminate inside MAX_LADDER_STEPS."""


@dataclass(frozen=True)
class PlannedStep:
    index: int
    bank_at_start: Decimal
    planned_stake: Decimal
    planned_goal: Decimal

    @property
    def number(self) -> int:
        """1-based label used by the ladder table ("1ª", "2ª", ...)."""
        return self.index + 1


def normalize_division(division: Optional[int]) -> int:
    """
    Single boundary for the division factor: missing -> default (10),
    anything below 1 -> 1. Every ladder build goes through here.
    """
    if division is None:
        return DEFAULT_BANKROLL_DIVISION
    d = int(division)
    if d < 1:
        print(f"[ladder.normalize_division] invalid bankroll division {division!r}, clamped to 1")
        return 1
    return d


def build_ladder(
    start_bankroll: Decimal,
    division: Optional[int],
    stake_goal_cap: Optional[Decimal] = None,
    min_steps_covered: int = 0,
) -> List[PlannedStep]:
    """
    Materialize the planned ladder.

    A capped ladder stops on the first step whose stake has reached the cap
    and whose index is >= min_steps_covered. An uncapped ladder (or one whose
    cap can never be reached because the bankroll is not positive) stops at
    index max(UNCAPPED_MIN_STEPS - 1, min_steps_covered + UNCAPPED_LOOKAHEAD),
    with the look-ahead cut short at the last of the MAX_LADDER_STEPS rows.

    Raises LadderConfigError when neither rule is met within MAX_LADDER_STEPS.
    """
    div = Decimal(normalize_division(division))
    bank = Decimal(start_bankroll)
    cap = Decimal(stake_goal_cap) if stake_goal_cap is not None else ZERO
    covered = max(0, int(min_steps_covered))

    capped = cap > 0 and bank > 0
    last_index = min(
        max(UNCAPPED_MIN_STEPS - 1, covered + UNCAPPED_LOOKAHEAD),
        max(covered, MAX_LADDER_STEPS - 1),
    )

    steps: List[PlannedStep] = []
    clamped = False
    for i in range(MAX_LADDER_STEPS):
        stake = bank / div
        if capped and (clamped or stake >= cap):
            stake = cap
            clamped = True
        goal = stake * GOAL_MULTIPLIER

        steps.append(PlannedStep(index=i, bank_at_start=bank, planned_stake=stake, planned_goal=goal))

        if capped:
            if clamped and i >= covered:
                return steps
        elif i >= last_index:
            return steps

        bank += goal

    raise LadderConfigError(
        f"ladder did not terminate within {MAX_LADDER_STEPS} steps "
        f"(start={start_bankroll}, division={division}, cap={stake_goal_cap}, covered={covered})"
    )


def ladder_for(project: Project) -> List[PlannedStep]:
    """Ladder covering the project's active cycle."""
    return build_ladder(
        project.start_bankroll,
        project.bankroll_division,
        project.stake_goal_cap,
        min_steps_covered=project.active_cycle_index,
    )


def recommended_stake(
    steps: Sequence[PlannedStep],
    active_index: int,
    start_bankroll: Decimal,
    division: Optional[int],
) -> Decimal:
    """Stake to use in the active cycle: strictly the planned one."""
    if 0 <= active_index < len(steps):
        return steps[active_index].planned_stake
    return Decimal(start_bankroll) / Decimal(normalize_division(division))


def stake_progress_pct(project: Project, steps: Sequence[PlannedStep]) -> Decimal:
    """
    How far the active stake has climbed from the initial stake toward the
    stake cap, in [0, 100]. Uncapped projects report 0.
    """
    if not project.is_capped:
        return ZERO
    start_stake = project.start_bankroll / Decimal(normalize_division(project.bankroll_division))
    cap = project.stake_goal_cap
    if cap <= start_stake:
        return ZERO
    current = recommended_stake(
        steps, project.active_cycle_index, project.start_bankroll, project.bankroll_division
    )
    if current > cap:
        current = cap
    pct = (current - start_stake) / (cap - start_stake) * 100
    return max(ZERO, min(Decimal(100), pct))
