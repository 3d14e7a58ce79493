"""
constants.py — shared constants used across the cache, services and monitor.

TTL tiers, table names, activity signal names and validation rules are
defined here so every writer picks an expiration by name, never by number.
"""

from __future__ import annotations

import re
from typing import Final, Literal


# ---------------------------------------------------------------------------
# Cache TTL tiers (seconds), chosen by data volatility
# ---------------------------------------------------------------------------
class CacheTTL:
    SHORT: Final[float] = 1 * 60           # paginated / admin views
    MEDIUM: Final[float] = 5 * 60          # aggregate stats, full profiles
    LONG: Final[float] = 15 * 60           # username taken, email registered
    VERY_LONG: Final[float] = 60 * 60
    SESSION: Final[float] = 30 * 60        # auth session, matches session timeout


DEFAULT_TTL: Final[float] = CacheTTL.MEDIUM

# ---------------------------------------------------------------------------
# Supabase tables
# ---------------------------------------------------------------------------
PROFILES_TABLE: Final[str] = "profiles"
USER_PROFILES_TABLE: Final[str] = "user_profiles"
LEADS_TABLE: Final[str] = "leads"

# PostgreSQL unique_violation
UNIQUE_VIOLATION: Final[str] = "23505"

# ---------------------------------------------------------------------------
# Session activity
# ---------------------------------------------------------------------------
ActivitySignal = Literal["pointerdown", "keydown", "scroll", "touchstart"]

ACTIVITY_SIGNALS: Final[tuple[str, ...]] = (
    "pointerdown",
    "keydown",
    "scroll",
    "touchstart",
)

AuthEvent = Literal[
    "INITIAL_SESSION",
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "USER_UPDATED",
    "PASSWORD_RECOVERY",
]

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_USERNAME_LENGTH: Final[int] = 3
WARM_RECENT_ENTRIES: Final[int] = 20
