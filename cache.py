# cache.py — Session-scoped caching for Supabase data and derived ledgers
#
# Reduces DB round-trips by caching project and bet lists in st.session_state.
# Ledgers are memoized on the identity of their inputs (project snapshot +
# wager tuple) since build_ledger() is pure. Every cache is invalidated
# explicitly when data changes.

import streamlit as st
from typing import Any, Callable, Iterable, List, MutableMapping, Optional

from cycle_ledger import LedgerView, build_ledger
from models import Project, Wager
from supabase_client import reset_supabase_client

_PREFIXES = (
    "_cache_projects_",
    "_cache_bets_",
    "_cache_ledger_",
)


def _store() -> MutableMapping[str, Any]:
    return st.session_state


# ============================================================
#  PROJECTS LIST CACHE
# ============================================================

def get_cached_projects(user_id: str, loader_fn: Callable[[str], List[Project]]) -> List[Project]:
    """
    Usage:
        from cache import get_cached_projects
        projects = get_cached_projects(USER_ID, get_projects_for_user)
    """
    if not user_id:
        return []

    store = _store()
    cache_key = f"_cache_projects_{user_id}"

    if cache_key not in store:
        try:
            store[cache_key] = loader_fn(user_id) or []
        except Exception as e:
            print(f"[cache] get_cached_projects loader error: {e!r}")
            return []

    return store[cache_key]


def invalidate_projects_cache(user_id: str) -> None:
    """Call after creating, editing, deleting or advancing a project."""
    if not user_id:
        return
    _store().pop(f"_cache_projects_{user_id}", None)


# ============================================================
#  BETS LIST CACHE
# ============================================================

def get_cached_bets(user_id: str, loader_fn: Callable[[str], List[Wager]]) -> List[Wager]:
    if not user_id:
        return []

    store = _store()
    cache_key = f"_cache_bets_{user_id}"

    if cache_key not in store:
        try:
            store[cache_key] = loader_fn(user_id) or []
        except Exception as e:
            print(f"[cache] get_cached_bets loader error: {e!r}")
            return []

    return store[cache_key]


def invalidate_bets_cache(user_id: str) -> None:
    """Call after recording, reclassifying or re-linking bets."""
    if not user_id:
        return
    _store().pop(f"_cache_bets_{user_id}", None)


# ============================================================
#  LEDGER MEMO (per project, keyed on input identity)
# ============================================================

def get_cached_ledger(project: Project, wagers: Iterable[Wager]) -> LedgerView:
    """
    Rebuilds only when the project snapshot or the wager set differs from
    the last call for this project.
    """
    wagers = tuple(wagers)
    fingerprint = hash((project, wagers))
    cache_key = f"_cache_ledger_{project.id or project.name}"
    store = _store()

    hit: Optional[tuple] = store.get(cache_key)
    if hit is not None and hit[0] == fingerprint and hit[1] == project and hit[2] == wagers:
        return hit[3]

    view = build_ledger(project, wagers)
    store[cache_key] = (fingerprint, project, wagers, view)
    return view


def invalidate_ledger_cache(project_id: str) -> None:
    if not project_id:
        return
    _store().pop(f"_cache_ledger_{project_id}", None)


# ============================================================
#  CONVENIENCE
# ============================================================

def invalidate_all_caches(user_id: str) -> None:
    """Clear cached lists for a user (ledgers follow their inputs)."""
    invalidate_projects_cache(user_id)
    invalidate_bets_cache(user_id)


def clear_all_user_caches() -> None:
    """
    Clear ALL user-specific caches regardless of user_id.
    Call on logout/login so no data bleeds between users.
    """
    store = _store()
    for k in [k for k in list(store.keys()) if any(str(k).startswith(p) for p in _PREFIXES)]:
        del store[k]


def ensure_user(user_id: str) -> None:
    """
    Drop every cache and the anon client when a different user shows up in
    the same browser session.
    """
    store = _store()
    last = store.get("_last_verified_user_id")
    if last is not None and last != user_id:
        print(f"[cache] user changed, clearing stale caches. old={last} new={user_id}")
        clear_all_user_caches()
        reset_supabase_client()
    store["_last_verified_user_id"] = user_id
