# reporting.py — market / team / league / methodology rollups over a flat wager set

import re
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from cycle_ledger import CycleLedgerEntry
from ladder import PlannedStep
from models import ZERO, Outcome, Wager

NO_LEAGUE = "No league"
NO_METHODOLOGY = "No methodology"
NO_MARKET = "No market"

FIRST_HALF_MARKER = "FIRST HALF"
UNDER_LINES = ("0.5", "1.5", "2.5", "3.5", "4.5", "5.5", "6.5", "7.5", "8.5")

# "Home vs Away", "Home v Away", "Away @ Home", "Home - Away", "Home / Away"
# A slash between digits ("1/2") is a score or a fraction, not a separator.
_EVENT_SPLIT_RE = re.compile(r"\s+(?:vs|v|@|-|(?<!\d)/(?!\d))\s+", re.IGNORECASE)


@dataclass
class GroupSummary:
    count: int = 0
    profit: Decimal = ZERO
    loss_event_count: int = 0
    settled: int = 0
    won: int = 0
    invested: Decimal = ZERO

    def add(self, w: Wager) -> None:
        self.count += 1
        self.profit += w.profit
        self.invested += w.stake
        if w.outcome.is_settled:
            self.settled += 1
        if w.outcome is Outcome.WON:
            self.won += 1
        elif w.outcome is Outcome.LOST:
            self.loss_event_count += 1

    @property
    def win_rate(self) -> Decimal:
        return Decimal(self.won) / Decimal(self.settled) * 100 if self.settled else ZERO

    @property
    def roi(self) -> Decimal:
        return self.profit / self.invested * 100 if self.invested > 0 else ZERO


def _summarize(wagers: Iterable[Wager], key: Callable[[Wager], str]) -> Dict[str, GroupSummary]:
    out: Dict[str, GroupSummary] = {}
    for w in wagers:
        out.setdefault(key(w), GroupSummary()).add(w)
    return out


def summarize_by_market(wagers: Iterable[Wager]) -> Dict[str, GroupSummary]:
    return _summarize(wagers, lambda w: w.market.strip() or NO_MARKET)


def summarize_by_league(wagers: Iterable[Wager]) -> Dict[str, GroupSummary]:
    return _summarize(wagers, lambda w: w.league or NO_LEAGUE)


def summarize_by_methodology(wagers: Iterable[Wager]) -> Dict[str, GroupSummary]:
    return _summarize(wagers, lambda w: w.methodology or NO_METHODOLOGY)


def summarize_by_tag(wagers: Iterable[Wager]) -> Dict[str, GroupSummary]:
    """A wager with several tags counts once under each of them."""
    out: Dict[str, GroupSummary] = {}
    for w in wagers:
        for t in dict.fromkeys(w.tags):
            out.setdefault(t, GroupSummary()).add(w)
    return out


# ---------- Teams (best-effort, from free-text events) ----------

def split_event_teams(event: str) -> List[str]:
    """
    Participant names recovered from an event string.
    Anything that does not split comes back as a single team.
    """
    parts = _EVENT_SPLIT_RE.split(event or "")
    return [p.strip() for p in parts if len(p.strip()) > 1]


def discover_teams(wagers: Iterable[Wager]) -> List[str]:
    teams = set()
    for w in wagers:
        teams.update(split_event_teams(w.event))
        if w.team:
            teams.add(w.team)
    return sorted(teams)


def summarize_by_team(
    wagers: Sequence[Wager],
    teams: Optional[Iterable[str]] = None,
) -> Dict[str, GroupSummary]:
    """
    Teams with at least one wager. A wager counts for a team when the name
    appears in its event (case-insensitive) or is its explicit team field.
    """
    wagers = list(wagers)
    names = list(teams) if teams is not None else discover_teams(wagers)

    out: Dict[str, GroupSummary] = {}
    for name in names:
        needle = name.lower()
        summary = GroupSummary()
        for w in wagers:
            if needle in w.event.lower() or w.team == name:
                summary.add(w)
        if summary.count:
            out[name] = summary
    return out


# ---------- Market matrix (UNDER lines, first half vs full time) ----------

def is_first_half(market: str) -> bool:
    return FIRST_HALF_MARKER in (market or "").upper()


def market_matrix(wagers: Sequence[Wager]) -> List[Dict[str, object]]:
    """
    One row per UNDER line with first-half ("ht") and full-time ("ft")
    summaries. A loss event on an UNDER market is a conceded goal.
    """
    rows: List[Dict[str, object]] = []
    for line in UNDER_LINES:
        label = f"UNDER {line}"
        ht, ft = GroupSummary(), GroupSummary()
        for w in wagers:
            m = (w.market or "").upper()
            if label not in m:
                continue
            if f"{label} HT" in m or FIRST_HALF_MARKER in m:
                ht.add(w)
            else:
                ft.add(w)
        rows.append({"market": label, "ht": ht, "ft": ft})
    return rows


def half_split(wagers: Iterable[Wager]) -> Dict[str, GroupSummary]:
    out = {"ht": GroupSummary(), "ft": GroupSummary()}
    for w in wagers:
        out["ht" if is_first_half(w.market) else "ft"].add(w)
    return out


# ---------- Overall ----------

def overall_stats(wagers: Iterable[Wager]) -> Dict[str, Decimal]:
    """
    Headline numbers over settled wagers.

    Pending wagers only count toward total_bets.
    """
    wagers = list(wagers)
    settled = [w for w in wagers if w.outcome.is_settled]
    won = sum(1 for w in settled if w.outcome is Outcome.WON)

    profit = sum((w.profit for w in settled), ZERO)
    invested = sum((w.stake for w in settled), ZERO)
    winners = [w for w in settled if w.profit > 0]
    losers = [w for w in settled if w.profit < 0]
    gains = sum((w.profit for w in winners), ZERO)
    losses = sum((-w.profit for w in losers), ZERO)

    return {
        "total_bets": Decimal(len(wagers)),
        "settled_bets": Decimal(len(settled)),
        "win_rate": Decimal(won) / Decimal(len(settled)) * 100 if settled else ZERO,
        "total_profit": profit,
        "invested": invested,
        "roi": profit / invested * 100 if invested > 0 else ZERO,
        "gains": gains,
        "losses": losses,
        "avg_win": gains / len(winners) if winners else ZERO,
        "avg_loss": -losses / len(losers) if losers else ZERO,
    }


@dataclass
class Ranking:
    winners: List[str] = field(default_factory=list)
    losers: List[str] = field(default_factory=list)


def rank_groups(summaries: Dict[str, GroupSummary], top: int = 5) -> Ranking:
    """Best `top` profitable groups and worst `top` losing groups."""
    ordered = sorted(summaries.items(), key=lambda kv: kv[1].profit, reverse=True)
    winners = [k for k, s in ordered if s.profit > 0][:top]
    losers = [k for k, s in reversed(ordered) if s.profit < 0][:top]
    return Ranking(winners=winners, losers=losers)


# ---------- Time series (daily / monthly / equity) ----------

def _local(ts: datetime, tz: Optional[tzinfo]) -> datetime:
    if tz is not None and ts.tzinfo is not None:
        return ts.astimezone(tz)
    return ts


def profit_by_day(wagers: Iterable[Wager], tz: Optional[tzinfo] = None) -> List[Dict[str, object]]:
    """
    One row per calendar day with at least one wager, oldest first:
    {"day": date, "profit": Decimal, "count": int}
    """
    buckets: Dict[date, List[Wager]] = {}
    for w in wagers:
        buckets.setdefault(_local(w.date, tz).date(), []).append(w)
    return [
        {"day": d, "profit": sum((w.profit for w in buckets[d]), ZERO), "count": len(buckets[d])}
        for d in sorted(buckets)
    ]


def profit_by_month(
    wagers: Iterable[Wager],
    year: int,
    monthly_stakes: Optional[Mapping[int, Decimal]] = None,
    tz: Optional[tzinfo] = None,
) -> List[Dict[str, object]]:
    """
    Twelve rows (months 1..12) for `year`; wagers from other years are ignored.

    monthly_stakes maps month -> the stake unit used that month. When a month
    has a positive stake its profit is also expressed in stakes
    ("profit_in_stakes"), otherwise that column is 0.
    """
    stakes = monthly_stakes or {}
    profit = {m: ZERO for m in range(1, 13)}
    count = {m: 0 for m in range(1, 13)}
    for w in wagers:
        ts = _local(w.date, tz)
        if ts.year != year:
            continue
        profit[ts.month] += w.profit
        count[ts.month] += 1

    rows: List[Dict[str, object]] = []
    for m in range(1, 13):
        stake = stakes.get(m)
        in_stakes = profit[m] / stake if stake is not None and stake > 0 else ZERO
        rows.append({"month": m, "profit": profit[m], "count": count[m], "stake": stake, "profit_in_stakes": in_stakes})
    return rows


def total_profit_in_stakes(monthly_rows: Iterable[Dict[str, object]]) -> Decimal:
    return sum((r["profit_in_stakes"] for r in monthly_rows), ZERO)


def equity_curve(wagers: Iterable[Wager], start_bankroll: Decimal = ZERO) -> List[Dict[str, object]]:
    """
    Running balance after each wager in date order, preceded by a starting
    point (n=0). Empty input gives an empty curve.
    """
    ordered = sorted(wagers, key=lambda w: w.date)
    if not ordered:
        return []

    balance = Decimal(start_bankroll)
    rows: List[Dict[str, object]] = [{"n": 0, "date": None, "profit": ZERO, "balance": balance}]
    for n, w in enumerate(ordered, start=1):
        balance += w.profit
        rows.append({"n": n, "date": w.date, "profit": w.profit, "balance": balance})
    return rows


# ============================================================
#  DataFrame presenters (rendering layer input)
# ============================================================

def _money(x: Decimal) -> float:
    return float(round(x, 2))


def ladder_frame(steps: Sequence[PlannedStep], active_index: Optional[int] = None) -> pd.DataFrame:
    rows = [
        {
            "step": s.number,
            "bank": _money(s.bank_at_start),
            "stake": _money(s.planned_stake),
            "goal": _money(s.planned_goal),
            "active": s.index == active_index,
        }
        for s in steps
    ]
    return pd.DataFrame(rows, columns=["step", "bank", "stake", "goal", "active"])


def ledger_frame(entries: Sequence[CycleLedgerEntry]) -> pd.DataFrame:
    rows = [
        {
            "cycle": e.index + 1,
            "raw_profit": _money(e.raw_profit),
            "carry_in": _money(e.incoming_carry),
            "profit": _money(e.display_profit),
            "carry_out": _money(e.outgoing_carry),
            "goal": _money(e.planned_goal),
            "progress_pct": _money(e.progress_pct),
            "met_goal": e.met_goal,
            "active": e.is_active,
        }
        for e in entries
    ]
    return pd.DataFrame(
        rows,
        columns=["cycle", "raw_profit", "carry_in", "profit", "carry_out", "goal", "progress_pct", "met_goal", "active"],
    )


def summary_frame(summaries: Dict[str, GroupSummary], label: str = "name") -> pd.DataFrame:
    """Sorted by profit, best first."""
    rows = [
        {
            label: name,
            "bets": s.count,
            "profit": _money(s.profit),
            "losses": s.loss_event_count,
            "win_rate": _money(s.win_rate),
            "roi": _money(s.roi),
        }
        for name, s in summaries.items()
    ]
    df = pd.DataFrame(rows, columns=[label, "bets", "profit", "losses", "win_rate", "roi"])
    if not df.empty:
        df = df.sort_values("profit", ascending=False).reset_index(drop=True)
    return df


def daily_frame(rows: Sequence[Dict[str, object]]) -> pd.DataFrame:
    """profit_by_day() rows as a table."""
    data = [{"day": r["day"], "profit": _money(r["profit"]), "bets": r["count"]} for r in rows]
    return pd.DataFrame(data, columns=["day", "profit", "bets"])


def monthly_frame(rows: Sequence[Dict[str, object]]) -> pd.DataFrame:
    data = [
        {
            "month": r["month"],
            "profit": _money(r["profit"]),
            "bets": r["count"],
            "profit_in_stakes": _money(r["profit_in_stakes"]),
        }
        for r in rows
    ]
    return pd.DataFrame(data, columns=["month", "profit", "bets", "profit_in_stakes"])


def equity_frame(rows: Sequence[Dict[str, object]]) -> pd.DataFrame:
    data = [{"n": r["n"], "date": r["date"], "balance": _money(r["balance"])} for r in rows]
    return pd.DataFrame(data, columns=["n", "date", "balance"])
