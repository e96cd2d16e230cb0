"""Small builders shared by the ledger tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from models import Outcome, Project, Wager

D = Decimal
BASE_DAY = datetime(2025, 3, 1, 15, 0, tzinfo=timezone.utc)

PROJECT_ID = "6f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b"
OTHER_PROJECT_ID = "0a1b2c3d-4e5f-4a6b-8c7d-8e9f0a1b2c3d"


def wager(profit, day=0, cycle=None, stake="10", outcome=None, hour=0, **extra):
    profit = D(str(profit))
    if outcome is None:
        if profit > 0:
            outcome = Outcome.WON
        elif profit < 0:
            outcome = Outcome.LOST
        else:
            outcome = Outcome.VOID
    return Wager(
        profit=profit,
        stake=D(str(stake)),
        date=BASE_DAY + timedelta(days=day, hours=hour),
        outcome=outcome,
        cycle_index=cycle,
        **extra,
    )


def wagers_on_days(n_days, cycle=0, profit="1", per_day=1):
    return [wager(profit, day=d, cycle=cycle, hour=h) for d in range(n_days) for h in range(per_day)]


def project(start="100", division=10, cap=None, active=0, **extra):
    extra.setdefault("id", PROJECT_ID)
    return Project(
        start_bankroll=D(str(start)),
        bankroll_division=division,
        stake_goal_cap=D(str(cap)) if cap is not None else None,
        active_cycle_index=active,
        **extra,
    )
