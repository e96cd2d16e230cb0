# db.py — persistence helpers for projects + bets (Supabase / PostgREST)

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
import datetime as dt
from datetime import tzinfo

import time
import httpx

from config import day_timezone
from cycle_manager import AdvanceResult, advance
from models import (
    Project,
    Wager,
    project_from_row,
    project_to_row,
    wager_from_row,
    wager_to_row,
)
from supabase_client import get_supabase

REASON_CONCURRENT_UPDATE = "concurrent_update"

# Only these bet columns may change once a bet exists
RECLASSIFY_FIELDS = {"market", "league", "team", "methodology", "tags"}


def _sid(x: Any) -> str:
    """Safe id normalize (uuid.UUID -> str, None -> '')."""
    if x is None:
        return ""
    try:
        return str(x)
    except Exception:
        return ""


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _execute_with_retry(q, *, tries: int = 3, base_sleep: float = 0.2):
    """
    Retry wrapper for transient PostgREST/httpx read/connect hiccups.
    q must be a PostgREST query object that supports .execute().
    """
    last_err = None
    for attempt in range(tries):
        try:
            return q.execute()
        except (httpx.ReadError, httpx.ConnectError, httpx.TimeoutException) as e:
            last_err = e
            time.sleep(base_sleep * (2 ** attempt))  # 0.2, 0.4, 0.8
    raise last_err  # bubble after retries


def _user_owns_project(sb, user_id: str, project_id: str) -> bool:
    user_id = _sid(user_id)
    project_id = _sid(project_id)
    if not user_id or not project_id:
        return False

    try:
        res = (
            sb.table("projects")
            .select("id")
            .eq("id", project_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return bool(res.data)
    except Exception:
        return False


# ---------- PROJECTS ----------

def get_projects_for_user(user_id: str) -> List[Project]:
    sb = get_supabase()
    user_id = _sid(user_id)
    if not user_id:
        return []

    q = (
        sb.table("projects")
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=False)
    )
    res = _execute_with_retry(q)

    projects: List[Project] = []
    for row in res.data or []:
        try:
            projects.append(project_from_row(row))
        except ValueError as e:
            print(f"[db.get_projects_for_user] skipping bad project row id={row.get('id')}: {e!r}")
    return projects


def get_project(user_id: str, project_id: str) -> Optional[Project]:
    sb = get_supabase()
    user_id = _sid(user_id)
    project_id = _sid(project_id)
    if not user_id or not project_id:
        return None

    q = (
        sb.table("projects")
        .select("*")
        .eq("id", project_id)
        .eq("user_id", user_id)
        .limit(1)
    )
    res = _execute_with_retry(q)
    rows = res.data or []
    return project_from_row(rows[0]) if rows else None


def create_project_for_user(user_id: str, project: Project) -> Project:
    sb = get_supabase()
    user_id = _sid(user_id)
    if not user_id:
        raise RuntimeError("Missing user_id. Refusing to create an unowned project.")

    payload = project_to_row(project)
    payload.update(
        {
            "user_id": user_id,
            "active_cycle_index": 0,
            "created_at": _now_iso(),
            "updated_at": _now_iso(),
        }
    )

    insert_res = sb.table("projects").insert(payload).execute()
    if not insert_res.data:
        raise RuntimeError("Failed to insert project row in 'projects' table.")

    return project_from_row(insert_res.data[0])


def update_project_config(user_id: str, project: Project) -> bool:
    """
    Write the config columns of a project. The cycle pointer is left alone;
    it only moves through persist_advance().
    """
    sb = get_supabase()
    project_id = _sid(project.id)

    if not _user_owns_project(sb, user_id, project_id):
        print(f"[update_project_config] blocked: project_id={project_id} not owned by user_id={user_id}")
        return False

    payload = project_to_row(project)
    payload["updated_at"] = _now_iso()
    try:
        sb.table("projects").update(payload).eq("id", project_id).eq("user_id", _sid(user_id)).execute()
        return True
    except Exception as e:
        print(f"[update_project_config] error while saving project_id={project_id}: {e!r}")
        return False


def delete_project(user_id: str, project_id: str) -> bool:
    """Deletes the project only; its bets stay in the journal unlinked."""
    sb = get_supabase()
    project_id = _sid(project_id)

    if not _user_owns_project(sb, user_id, project_id):
        print(f"[delete_project] blocked: project_id={project_id} not owned by user_id={user_id}")
        return False

    try:
        sb.table("bets").update({"project_id": None}).eq("project_id", project_id).eq("user_id", _sid(user_id)).execute()
        sb.table("projects").delete().eq("id", project_id).eq("user_id", _sid(user_id)).execute()
        return True
    except Exception as e:
        print(f"[delete_project] error project_id={project_id}: {e!r}")
        return False


# ---------- CYCLE ADVANCEMENT ----------

def persist_advance(user_id: str, project_id: str, expected_index: int) -> bool:
    """
    Compare-and-swap the cycle pointer: expected_index -> expected_index + 1.

    The update is filtered on the previous value, so of two racing requests
    only one matches a row. Returns True when this call won.
    """
    sb = get_supabase()
    user_id = _sid(user_id)
    project_id = _sid(project_id)
    if not user_id or not project_id:
        return False

    q = (
        sb.table("projects")
        .update({"active_cycle_index": int(expected_index) + 1, "updated_at": _now_iso()})
        .eq("id", project_id)
        .eq("user_id", user_id)
        .eq("active_cycle_index", int(expected_index))
    )
    res = _execute_with_retry(q)
    return bool(res.data)


def advance_project(
    user_id: str,
    project: Project,
    cycle_wagers: Iterable[Wager],
    tz: Optional[tzinfo] = None,
) -> AdvanceResult:
    """
    Gate + persist. A gate denial returns without touching the store.
    Losing the race returns accepted=False with the snapshot re-read from
    the store (the winner's index). Days are counted in LEDGER_DAY_TZ unless
    tz is given.
    """
    if tz is None:
        tz = day_timezone()
    result = advance(project, cycle_wagers, tz)
    if not result.accepted:
        return result

    if persist_advance(user_id, _sid(project.id), project.active_cycle_index):
        return result

    print(f"[advance_project] lost advancement race project_id={project.id} from cycle={project.active_cycle_index}")
    fresh = get_project(user_id, _sid(project.id)) or project
    return AdvanceResult(
        accepted=False,
        project=fresh,
        distinct_days=result.distinct_days,
        reason=REASON_CONCURRENT_UPDATE,
    )


# ---------- BETS ----------

def get_bets_for_user(user_id: str) -> List[Wager]:
    sb = get_supabase()
    user_id = _sid(user_id)
    if not user_id:
        return []

    q = (
        sb.table("bets")
        .select("*")
        .eq("user_id", user_id)
        .order("date", desc=False)
    )
    res = _execute_with_retry(q)

    out: List[Wager] = []
    for row in res.data or []:
        w = wager_from_row(row)
        if w is None:
            print(f"[db.get_bets_for_user] skipping bet without date id={row.get('id')}")
            continue
        out.append(w)
    return out


def get_bets_for_project(user_id: str, project: Project) -> List[Wager]:
    """Explicitly linked bets plus tag matches (tag matching is case-insensitive, done client-side)."""
    return [w for w in get_bets_for_user(user_id) if project.owns(w)]


def record_bet(user_id: str, wager: Wager, project: Optional[Project] = None) -> Optional[Wager]:
    """
    Insert a bet. Recorded against a project, it is linked to it and, unless
    it already carries one, stamped with the project's active cycle.
    """
    sb = get_supabase()
    user_id = _sid(user_id)
    if not user_id:
        return None

    payload = wager_to_row(wager)
    if project is not None:
        payload["project_id"] = _sid(project.id) or None
        if payload.get("cycle_index") is None:
            payload["cycle_index"] = project.active_cycle_index
    payload["user_id"] = user_id
    payload["created_at"] = _now_iso()

    try:
        res = sb.table("bets").insert(payload).execute()
    except Exception as e:
        print(f"[record_bet] insert failed: {e!r}")
        return None

    rows = res.data or []
    return wager_from_row(rows[0]) if rows else None


def reclassify_bet(user_id: str, bet_id: str, **fields: Any) -> bool:
    """Update classification fields of a bet; anything else is refused."""
    bad = set(fields) - RECLASSIFY_FIELDS
    if bad:
        raise ValueError(f"reclassify_bet cannot change {sorted(bad)}")
    if not fields:
        return True

    sb = get_supabase()
    payload = dict(fields)
    if "tags" in payload:
        payload["tags"] = [str(t).strip() for t in (payload["tags"] or []) if str(t or "").strip()]

    try:
        res = sb.table("bets").update(payload).eq("id", _sid(bet_id)).eq("user_id", _sid(user_id)).execute()
        return bool(res.data)
    except Exception as e:
        print(f"[reclassify_bet] error bet_id={bet_id}: {e!r}")
        return False


def assign_bets_by_tag(user_id: str, project: Project, tag: str) -> int:
    """
    Link every unlinked bet carrying `tag` to the project, attributing it to
    the active cycle when it has no cycle yet. Returns how many were linked.
    """
    wanted = (tag or "").strip().lower()
    project_id = _sid(project.id)
    if not wanted or not project_id:
        return 0

    sb = get_supabase()
    if not _user_owns_project(sb, user_id, project_id):
        print(f"[assign_bets_by_tag] blocked: project_id={project_id} not owned by user_id={user_id}")
        return 0

    linked = 0
    for w in get_bets_for_user(user_id):
        if w.project_id or not w.id:
            continue
        if not any(t.lower() == wanted for t in w.tags):
            continue
        payload: Dict[str, Any] = {"project_id": project_id}
        if w.cycle_index is None:
            payload["cycle_index"] = project.active_cycle_index
        try:
            sb.table("bets").update(payload).eq("id", w.id).eq("user_id", _sid(user_id)).execute()
            linked += 1
        except Exception as e:
            print(f"[assign_bets_by_tag] update failed bet_id={w.id}: {e!r}")
    return linked
