"""
Runtime configuration for the FitManager client.

Values are resolved once at import from environment variables. The Streamlit
front end may override API_URL from st.secrets before building its context.
"""
from __future__ import annotations

import os

import pytz
from dateutil import tz as dateutil_tz


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _resolve_tz(name: str | None):
    # Unknown zone names fall back to the machine zone rather than failing at import
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            pass
    return dateutil_tz.tzlocal()


# -------------------------------
# Remote API
# -------------------------------
API_URL: str = os.getenv("FITMANAGER_API_URL", "http://localhost:5000/api").rstrip("/")
REQUEST_TIMEOUT: float = _float_env("FITMANAGER_TIMEOUT", 10.0)

# -------------------------------
# Session persistence
# -------------------------------
STATE_PATH: str = os.getenv(
    "FITMANAGER_STATE_PATH",
    os.path.join(os.path.expanduser("~"), ".fitmanager", "session.json"),
)
TOKEN_KEY = "token"
# Keep the token in STATE_PATH across restarts. Only for single-user local runs:
# every browser session of the app reads the same file.
PERSIST_TOKEN: bool = os.getenv("FITMANAGER_PERSIST_TOKEN", "").strip().lower() in ("1", "true", "yes")

# -------------------------------
# Day bucketing
# -------------------------------
# Canonical zone for every day key (weight, hydration and macros alike)
LOCAL_TZ = _resolve_tz(os.getenv("FITMANAGER_TZ"))

# -------------------------------
# Hydration targets (ml)
# -------------------------------
HYDRATION_DAILY_GOAL = 2000.0
HYDRATION_MAX = 4000.0
HYDRATION_STEP = 100.0

LOG_LEVEL: str = os.getenv("FITMANAGER_LOG_LEVEL", "INFO").upper()
