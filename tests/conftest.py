"""
tests/conftest.py — Shared pytest fixtures for the sigma_core test suite.

Provides:
  FakeScheduler    — simulated clock; timers fire only when advance() is awaited
  make_backend()   — MagicMock of SupabaseBackend (async methods are AsyncMocks)
  make_session()   — AuthSession for a given user id
  profile_row() / lead_row() — rows shaped like the Supabase responses
  cache / backend / auth / profiles / guard / waitlist / core fixtures
"""

from __future__ import annotations

import heapq
import inspect
import itertools
from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock

import pytest

from sigma_core import cache_keys
from sigma_core.app import create_core
from sigma_core.backend import SupabaseBackend
from sigma_core.config import Settings
from sigma_core.models.auth import AuthSession, AuthUser
from sigma_core.services.auth_service import AuthService
from sigma_core.services.profile_service import ProfileService
from sigma_core.services.submission_guard import SubmissionGuard
from sigma_core.services.waitlist_service import WaitlistService
from sigma_core.utils.cache import TTLCache
from sigma_core.utils.scheduler import Scheduler, TimerHandle

COOLDOWN = 60.0


# ---------------------------------------------------------------------------
# Simulated time
# ---------------------------------------------------------------------------

@dataclass
class _FakeTimer:
    callback: Any
    interval: float | None = None
    cancelled: bool = False


class FakeScheduler(Scheduler):
    """Scheduler whose clock only moves when a test calls advance()."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, _FakeTimer]] = []

    def now(self) -> float:
        return self._now

    def after(self, delay: float, callback: Any) -> TimerHandle:
        return self._push(self._now + delay, _FakeTimer(callback))

    def every(self, interval: float, callback: Any) -> TimerHandle:
        return self._push(self._now + interval, _FakeTimer(callback, interval=interval))

    def _push(self, due: float, timer: _FakeTimer) -> TimerHandle:
        heapq.heappush(self._queue, (due, next(self._seq), timer))
        return TimerHandle(lambda: setattr(timer, "cancelled", True))

    @property
    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing (and awaiting) every timer that comes due."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            if timer.interval is not None:
                heapq.heappush(self._queue, (due + timer.interval, next(self._seq), timer))
            result = timer.callback()
            if inspect.isawaitable(result):
                await result
        self._now = target


# ---------------------------------------------------------------------------
# Backend mock and sample data
# ---------------------------------------------------------------------------

def make_backend() -> MagicMock:
    """A SupabaseBackend mock returning empty results by default.

    Override per test: backend.fetch_profile.return_value = profile_row(...)
    or backend.insert_lead.side_effect = DuplicateRecordError("dup").
    """
    backend = MagicMock(spec=SupabaseBackend)
    backend.get_session.return_value = None
    backend.sign_in.return_value = (None, None)
    backend.sign_up.return_value = (None, None)
    backend.sign_out.return_value = None
    backend.refresh_session.return_value = None
    backend.fetch_profile.return_value = None
    backend.fetch_profiles.return_value = []
    backend.create_profile.return_value = None
    backend.fetch_permissions.return_value = None
    backend.count_username.return_value = 0
    backend.insert_lead.return_value = None
    backend.find_lead.return_value = None
    backend.count_leads.return_value = 0
    backend.list_leads.return_value = []
    backend.on_auth_state_change.return_value = MagicMock(name="unsubscribe")
    return backend


def make_session(user_id: str = "user-1", email: str = "user@example.com") -> AuthSession:
    return AuthSession(
        access_token=f"token-{user_id}",
        refresh_token="refresh",
        expires_at=1_900_000_000,
        user=AuthUser(id=user_id, email=email),
    )


def profile_row(user_id: str, **fields: Any) -> dict[str, Any]:
    row = {
        "id": user_id,
        "username": f"{user_id}_name",
        "bio": "",
        "completion_percentage": 40,
        "profiles": {
            "name": f"User {user_id}",
            "email": f"{user_id}@example.com",
            "image": None,
            "has_access": True,
            "created_at": "2025-06-30T12:00:00+00:00",
            "updated_at": "2025-06-30T12:00:00+00:00",
        },
    }
    row.update(fields)
    return row


def lead_row(lead_id: str, created_at: str, email: str | None = None) -> dict[str, Any]:
    row: dict[str, Any] = {"id": lead_id, "created_at": created_at}
    if email is not None:
        row["email"] = email
    return row


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def cache(scheduler: FakeScheduler) -> TTLCache:
    return TTLCache(clock=scheduler.now)


@pytest.fixture()
def backend() -> MagicMock:
    return make_backend()


@pytest.fixture()
def auth(cache: TTLCache, backend: MagicMock) -> AuthService:
    return AuthService(cache, backend, password_reset_url="http://test/reset-password")


@pytest.fixture()
def profiles(cache: TTLCache, backend: MagicMock) -> ProfileService:
    return ProfileService(cache, backend)


@pytest.fixture()
def guard(cache: TTLCache, scheduler: FakeScheduler) -> SubmissionGuard:
    return SubmissionGuard(
        cache,
        scheduler,
        cooldown=COOLDOWN,
        invalidate_keys=(cache_keys.waitlist_stats(),),
        invalidate_prefixes=(
            cache_keys.RECENT_ENTRIES_PREFIX,
            cache_keys.PAGINATED_STATS_PREFIX,
        ),
    )


@pytest.fixture()
def waitlist(cache: TTLCache, backend: MagicMock, guard: SubmissionGuard) -> WaitlistService:
    return WaitlistService(cache, backend, guard)


@pytest.fixture()
def core_settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_anon_key="test-anon-key",
        session_timeout=1800,
        session_warning_lead=300,
        submission_cooldown=COOLDOWN,
        cache_warm_timeout=0.05,
        cache_cleanup_interval=300,
        cache_stats_interval=600,
        environment="production",
    )


@pytest.fixture()
def core(core_settings: Settings, backend: MagicMock, scheduler: FakeScheduler):
    services = create_core(core_settings, backend=backend, scheduler=scheduler)
    yield services
    services.shutdown()
