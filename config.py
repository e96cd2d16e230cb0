# config.py — secrets / env lookup shared by the store layer and the ledger callers
from __future__ import annotations

import os
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import streamlit as st

DEFAULT_APP_ENV = "prod"
DEFAULT_DAY_TZ = "UTC"


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """Process env first, then Streamlit secrets."""
    v = os.getenv(name)
    if v:
        return v
    try:
        if name in st.secrets:
            v2 = st.secrets[name]
            if v2:
                return str(v2)
    except Exception:
        # no secrets.toml outside a Streamlit deployment
        pass
    return default


def app_env() -> str:
    return (get_secret("APP_ENV", DEFAULT_APP_ENV) or DEFAULT_APP_ENV).lower().strip()


def day_timezone() -> tzinfo:
    """
    Calendar used to count distinct betting days for cycle advancement.
    Falls back to UTC when LEDGER_DAY_TZ is not a known zone.
    """
    name = (get_secret("LEDGER_DAY_TZ", DEFAULT_DAY_TZ) or DEFAULT_DAY_TZ).strip()
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        print(f"[config.day_timezone] unknown LEDGER_DAY_TZ={name!r}, using UTC: {e!r}")
        return timezone.utc
