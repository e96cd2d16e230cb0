# supabase_client.py — per-session anon client for the projects / bets store
from __future__ import annotations

import streamlit as st

from supabase import Client, ClientOptions, create_client

from config import app_env, get_secret

DEFAULT_SCHEMA = "public"
DEFAULT_TIMEOUT_S = 10

_SESSION_KEY = "supabase_client_anon"


class SupabaseConfigError(RuntimeError):
    pass


def _cfg():
    """(env, url, anon_key) for the active APP_ENV; suffixed names win over plain ones."""
    env = app_env()
    suffix = "DEV" if env == "dev" else "PROD"

    url = get_secret(f"SUPABASE_URL_{suffix}") or get_secret("SUPABASE_URL")
    anon = get_secret(f"SUPABASE_ANON_KEY_{suffix}") or get_secret("SUPABASE_ANON_KEY")

    if not url or not anon:
        raise SupabaseConfigError(
            f"Missing Supabase credentials for APP_ENV={env!r}: set SUPABASE_URL_{suffix} / "
            f"SUPABASE_ANON_KEY_{suffix} (or SUPABASE_URL / SUPABASE_ANON_KEY)."
        )
    return env, url, anon


def _timeout() -> int:
    raw = get_secret("SUPABASE_TIMEOUT_S")
    try:
        return int(raw) if raw else DEFAULT_TIMEOUT_S
    except ValueError:
        print(f"[supabase_client] bad SUPABASE_TIMEOUT_S={raw!r}, using {DEFAULT_TIMEOUT_S}s")
        return DEFAULT_TIMEOUT_S


def _make_client(url: str, key: str) -> Client:
    """
    The host app owns login and token refresh, so the SDK keeps no session
    of its own. Slow PostgREST calls fail after SUPABASE_TIMEOUT_S and are
    retried by db._execute_with_retry.
    """
    opts = ClientOptions(
        schema=get_secret("SUPABASE_SCHEMA", DEFAULT_SCHEMA) or DEFAULT_SCHEMA,
        postgrest_client_timeout=_timeout(),
        persist_session=False,
        auto_refresh_token=False,
    )
    return create_client(url, key, options=opts)


def get_supabase() -> Client:
    """Anon client for this Streamlit session (RLS enforced)."""
    client = st.session_state.get(_SESSION_KEY)
    if client is None:
        _, url, anon = _cfg()
        client = _make_client(url, anon)
        st.session_state[_SESSION_KEY] = client
    return client


def reset_supabase_client() -> None:
    """Next get_supabase() builds a fresh client (used when the user changes)."""
    st.session_state.pop(_SESSION_KEY, None)
