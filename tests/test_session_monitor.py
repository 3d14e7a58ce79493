"""Tests for session_monitor.py — warning, expiry and activity reset."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from sigma_core.activity import ActivitySignals
from sigma_core.constants import ACTIVITY_SIGNALS
from sigma_core.errors import BackendError
from sigma_core.session_monitor import SessionActivityMonitor, SessionState
from tests.conftest import make_session

TIMEOUT = 1800.0
LEAD = 300.0


@pytest.fixture()
def signals() -> ActivitySignals:
    return ActivitySignals()


@pytest.fixture()
def sign_out() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def monitor(scheduler, signals, sign_out) -> SessionActivityMonitor:
    return SessionActivityMonitor(
        scheduler, signals, sign_out, timeout=TIMEOUT, warning_lead=LEAD
    )


def test_lead_must_be_shorter_than_timeout(scheduler, signals, sign_out):
    with pytest.raises(ValueError):
        SessionActivityMonitor(scheduler, signals, sign_out, timeout=60, warning_lead=60)


def test_idle_monitor_reports_expired_and_zero_remaining(monitor):
    assert monitor.state is SessionState.EXPIRED
    assert monitor.session is None
    assert monitor.get_time_until_timeout() == 0.0


class TestTracking:
    def test_start_subscribes_to_every_signal(self, monitor, signals):
        monitor.start_tracking()
        assert monitor.is_tracking
        assert monitor.state is SessionState.ACTIVE
        for signal in ACTIVITY_SIGNALS:
            assert signals.listener_count(signal) == 1

    def test_start_is_idempotent(self, monitor, signals, scheduler):
        monitor.start_tracking()
        monitor.start_tracking()
        assert signals.listener_count() == len(ACTIVITY_SIGNALS)
        assert scheduler.pending == 2

    def test_stop_detaches_listeners_and_timers(self, monitor, signals, scheduler):
        monitor.start_tracking()
        monitor.stop_tracking()

        assert not monitor.is_tracking
        assert signals.listener_count() == 0
        assert scheduler.pending == 0
        assert monitor.session is None

    def test_reset_without_tracking_is_noop(self, monitor, scheduler):
        monitor.reset_activity_timer()
        assert scheduler.pending == 0
        assert monitor.session is None


class TestWarning:
    @pytest.mark.asyncio
    async def test_warning_fires_once_with_lead_remaining(self, monitor, scheduler):
        warnings: list[float] = []
        monitor.on_warning(warnings.append)
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT - LEAD - 1)
        assert warnings == []

        await scheduler.advance(1)
        assert warnings == [LEAD]
        assert monitor.state is SessionState.WARNING
        assert monitor.session.warning_fired

        await scheduler.advance(LEAD - 1)
        assert warnings == [LEAD]

    @pytest.mark.asyncio
    async def test_unsubscribed_warning_callback_is_not_called(self, monitor, scheduler):
        callback = MagicMock()
        unsubscribe = monitor.on_warning(callback)
        unsubscribe()
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT - LEAD)
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_warning_callback_does_not_stop_others(self, monitor, scheduler):
        seen: list[float] = []
        monitor.on_warning(MagicMock(side_effect=RuntimeError("boom")))
        monitor.on_warning(seen.append)
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT - LEAD)
        assert seen == [LEAD]


class TestExpiry:
    @pytest.mark.asyncio
    async def test_timeout_signs_out_and_notifies(self, monitor, scheduler, sign_out):
        timed_out = MagicMock()
        monitor.on_timeout(timed_out)
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT)

        sign_out.assert_awaited_once()
        timed_out.assert_called_once_with()
        assert monitor.state is SessionState.EXPIRED
        assert not monitor.is_tracking
        assert monitor.session is None

    @pytest.mark.asyncio
    async def test_timeout_notifies_even_if_sign_out_fails(self, scheduler, signals):
        sign_out = AsyncMock(side_effect=BackendError("network down"))
        monitor = SessionActivityMonitor(
            scheduler, signals, sign_out, timeout=TIMEOUT, warning_lead=LEAD
        )
        timed_out = MagicMock()
        monitor.on_timeout(timed_out)
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT)
        timed_out.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_timeout_through_auth_clears_cache(self, scheduler, signals, auth, cache, backend):
        backend.get_session.return_value = make_session()
        await auth.get_current_session()
        cache.set("profile:settings:user-1", {"id": "user-1"})

        monitor = SessionActivityMonitor(
            scheduler, signals, auth.sign_out, timeout=TIMEOUT, warning_lead=LEAD
        )
        monitor.start_tracking()
        await scheduler.advance(TIMEOUT)

        backend.sign_out.assert_awaited_once()
        assert len(cache) == 0


class TestActivity:
    @pytest.mark.asyncio
    async def test_activity_restarts_countdown(self, monitor, scheduler, signals, sign_out):
        warnings: list[float] = []
        monitor.on_warning(warnings.append)
        monitor.start_tracking()

        await scheduler.advance(TIMEOUT - 10)
        assert warnings == [LEAD]

        signals.emit("keydown")
        assert monitor.state is SessionState.ACTIVE
        assert monitor.get_time_until_timeout() == TIMEOUT

        await scheduler.advance(TIMEOUT - 10)
        sign_out.assert_not_awaited()
        assert warnings == [LEAD, LEAD]

        await scheduler.advance(10)
        sign_out.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_activity_after_stop_is_ignored(self, monitor, scheduler, signals):
        monitor.start_tracking()
        monitor.stop_tracking()
        signals.emit("scroll")
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_extend_session_refreshes_then_resets(self, monitor, scheduler):
        monitor.start_tracking()
        await scheduler.advance(1000)
        assert monitor.get_time_until_timeout() == TIMEOUT - 1000

        refresh = AsyncMock()
        await monitor.extend_session(refresh)

        refresh.assert_awaited_once()
        assert monitor.get_time_until_timeout() == TIMEOUT


class TestAuthBinding:
    def test_sign_in_event_starts_and_sign_out_stops(self, monitor, auth, backend):
        unsubscribe = monitor.bind_auth(auth)
        backend.on_auth_state_change.assert_called_once()

        auth.handle_auth_event("SIGNED_IN", make_session())
        assert monitor.is_tracking

        auth.handle_auth_event("SIGNED_OUT", None)
        assert not monitor.is_tracking

        unsubscribe()
        auth.handle_auth_event("SIGNED_IN", make_session())
        assert not monitor.is_tracking
