"""
cache_keys.py — key builders for every cached entity.

One function per entity so two domains can never share a key by accident.
Parameters are escaped before joining, which keeps the mapping one-to-one:
distinct parameter tuples always give distinct keys.

Usage:
    from sigma_core import cache_keys

    cache.get(cache_keys.profile_settings(user_id))   # "profile:settings:<id>"
    cache.get(cache_keys.recent_entries(10, 0))       # "recent_entries:10:0"
"""

from __future__ import annotations


def _escape(part: object) -> str:
    return str(part).replace("%", "%25").replace(":", "%3A")


def _key(namespace: str, *parts: object) -> str:
    return ":".join([namespace, *(_escape(p) for p in parts)])


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

def auth_session() -> str:
    return "auth_session"


def user_permissions(user_id: str) -> str:
    return _key("user_permissions", user_id)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def profile_settings(user_id: str) -> str:
    return _key("profile:settings", user_id)


def user_profile(user_id: str) -> str:
    return _key("profile:user", user_id)


def basic_profile(user_id: str) -> str:
    return _key("profile:basic", user_id)


def username_check(username: str) -> str:
    return _key("username_check", username.strip().lower())


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------

def email_exists(email: str) -> str:
    return _key("email_exists", email.strip().lower())


def waitlist_stats() -> str:
    return "waitlist_stats"


RECENT_ENTRIES_PREFIX = "recent_entries:"
PAGINATED_STATS_PREFIX = "paginated_stats:"


def recent_entries(limit: int, offset: int) -> str:
    return _key("recent_entries", limit, offset)


def paginated_stats(page: int, page_size: int) -> str:
    return _key("paginated_stats", page, page_size)
