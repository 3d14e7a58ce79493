"""
session_monitor.py — Activity-driven session timeout.

State machine:

    ACTIVE --(timeout - lead elapsed)--> WARNING --(timeout elapsed)--> EXPIRED
       ^                                    |
       +------------ any activity ----------+

Tracking starts when the backend reports a signed-in user and stops when
it reports none. While tracking, any of the activity signals re-arms both
timers. The warning timer notifies on_warning callbacks with the seconds
left; the expiry timer forces a sign-out and then notifies on_timeout
callbacks.

Usage:
    monitor = SessionActivityMonitor(scheduler, signals, auth.sign_out)
    monitor.on_warning(lambda remaining: toast(f"{remaining:.0f}s left"))
    monitor.on_timeout(lambda: redirect("/login?reason=timeout"))
    monitor.bind_auth(auth)
"""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from sigma_core.activity import ActivitySignals
from sigma_core.config import settings
from sigma_core.constants import ACTIVITY_SIGNALS
from sigma_core.models.auth import AuthUser
from sigma_core.utils.scheduler import Scheduler, TimerHandle

if TYPE_CHECKING:
    from sigma_core.services.auth_service import AuthService

log = structlog.get_logger(__name__)

WarningCallback = Callable[[float], None]
TimeoutCallback = Callable[[], None]


class SessionState(enum.Enum):
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass
class SessionActivity:
    last_activity_at: float
    warning_fired: bool = False


class SessionActivityMonitor:
    def __init__(
        self,
        scheduler: Scheduler,
        signals: ActivitySignals,
        sign_out: Callable[[], Awaitable[Any]],
        *,
        timeout: float | None = None,
        warning_lead: float | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._signals = signals
        self._sign_out = sign_out
        self.timeout = timeout if timeout is not None else settings.session_timeout
        self.warning_lead = (
            warning_lead if warning_lead is not None else settings.session_warning_lead
        )
        if not 0 < self.warning_lead < self.timeout:
            raise ValueError("warning_lead must be positive and shorter than timeout")

        self._session: SessionActivity | None = None
        self._state = SessionState.EXPIRED
        self._warning_timer: TimerHandle | None = None
        self._expiry_timer: TimerHandle | None = None
        self._detach: list[Callable[[], None]] = []
        self._warning_callbacks: list[WarningCallback] = []
        self._timeout_callbacks: list[TimeoutCallback] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_warning(self, callback: WarningCallback) -> Callable[[], None]:
        self._warning_callbacks.append(callback)
        return lambda: _discard(self._warning_callbacks, callback)

    def on_timeout(self, callback: TimeoutCallback) -> Callable[[], None]:
        self._timeout_callbacks.append(callback)
        return lambda: _discard(self._timeout_callbacks, callback)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> SessionActivity | None:
        return self._session

    @property
    def is_tracking(self) -> bool:
        return bool(self._detach)

    def get_time_until_timeout(self) -> float:
        if self._session is None:
            return 0.0
        elapsed = self._scheduler.now() - self._session.last_activity_at
        return max(0.0, self.timeout - elapsed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_tracking(self) -> None:
        if self.is_tracking:
            return
        for signal in ACTIVITY_SIGNALS:
            self._detach.append(self._signals.subscribe(signal, self._on_activity))
        log.info("session_tracking_started", timeout=self.timeout)
        self.reset_activity_timer()

    def stop_tracking(self) -> None:
        for detach in self._detach:
            detach()
        self._detach.clear()
        self._cancel_timers()
        self._session = None
        if self._state is not SessionState.EXPIRED:
            log.info("session_tracking_stopped")
        self._state = SessionState.EXPIRED

    def reset_activity_timer(self) -> None:
        """Re-arm both timers from now (activity or an explicit extension)."""
        if not self.is_tracking:
            return
        self._cancel_timers()
        self._session = SessionActivity(last_activity_at=self._scheduler.now())
        self._state = SessionState.ACTIVE
        self._warning_timer = self._scheduler.after(
            self.timeout - self.warning_lead, self._fire_warning
        )
        self._expiry_timer = self._scheduler.after(self.timeout, self._expire)

    async def extend_session(self, refresh: Callable[[], Awaitable[Any]]) -> None:
        """Refresh the backend session, then restart the countdown."""
        await refresh()
        self.reset_activity_timer()

    def handle_auth_change(self, user: AuthUser | None) -> None:
        if user is not None:
            self.start_tracking()
        else:
            self.stop_tracking()

    def bind_auth(self, auth: AuthService) -> Callable[[], None]:
        """Follow backend auth state. Returns an unsubscribe function."""
        return auth.on_auth_state_change(self.handle_auth_change)

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _on_activity(self, signal: str) -> None:
        self.reset_activity_timer()

    def _fire_warning(self) -> None:
        self._warning_timer = None
        if self._session is None:
            return
        self._session.warning_fired = True
        self._state = SessionState.WARNING
        remaining = self.get_time_until_timeout()
        log.info("session_warning", time_remaining=remaining)
        for callback in list(self._warning_callbacks):
            try:
                callback(remaining)
            except Exception as exc:
                log.error("session_warning_callback_failed", error=str(exc))

    async def _expire(self) -> None:
        self._expiry_timer = None
        if self._session is None:
            return
        log.info("session_timeout")
        self.stop_tracking()
        try:
            await self._sign_out()
        except Exception as exc:
            log.error("session_forced_sign_out_failed", error=str(exc))
        for callback in list(self._timeout_callbacks):
            try:
                callback()
            except Exception as exc:
                log.error("session_timeout_callback_failed", error=str(exc))

    def _cancel_timers(self) -> None:
        for timer in (self._warning_timer, self._expiry_timer):
            if timer is not None:
                timer.cancel()
        self._warning_timer = None
        self._expiry_timer = None


def _discard(callbacks: list[Any], callback: Any) -> None:
    if callback in callbacks:
        callbacks.remove(callback)
