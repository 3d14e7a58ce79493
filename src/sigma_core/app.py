"""Core factory: one cache, one scheduler, every service wired to them."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field

import structlog

from sigma_core import cache_keys
from sigma_core.activity import ActivitySignals
from sigma_core.backend import SupabaseBackend
from sigma_core.config import Settings, settings as default_settings
from sigma_core.services.auth_service import AuthService
from sigma_core.services.profile_service import ProfileService
from sigma_core.services.submission_guard import SubmissionGuard
from sigma_core.services.waitlist_service import WaitlistService
from sigma_core.session_monitor import SessionActivityMonitor
from sigma_core.utils.cache import TTLCache
from sigma_core.utils.scheduler import AsyncioScheduler, Scheduler
from sigma_core.warmer import CacheWarmer

logger = structlog.get_logger()


@dataclass
class CoreServices:
    cache: TTLCache
    scheduler: Scheduler
    backend: SupabaseBackend
    signals: ActivitySignals
    auth: AuthService
    profiles: ProfileService
    guard: SubmissionGuard
    waitlist: WaitlistService
    monitor: SessionActivityMonitor
    warmer: CacheWarmer
    _unsubscribe: list[Callable[[], None]] = field(default_factory=list)

    async def start(self) -> bool:
        """Follow auth state with the monitor, then warm the cache.

        Returns True if warming finished within its time budget.
        """
        if not self._unsubscribe:
            self._unsubscribe.append(self.monitor.bind_auth(self.auth))
        warmed = await self.warmer.initialize()
        if await self.auth.get_current_user() is not None:
            self.monitor.start_tracking()
        return warmed

    def shutdown(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        self.monitor.stop_tracking()
        self.guard.cancel_all()
        self.warmer.stop()
        logger.info("core_shutdown", **asdict(self.cache.get_stats()))


def create_core(
    config: Settings | None = None,
    *,
    backend: SupabaseBackend,
    scheduler: Scheduler | None = None,
    signals: ActivitySignals | None = None,
) -> CoreServices:
    config = config or default_settings
    scheduler = scheduler or AsyncioScheduler()
    signals = signals or ActivitySignals()
    cache = TTLCache(clock=scheduler.now)

    auth = AuthService(cache, backend, password_reset_url=config.password_reset_url)
    profiles = ProfileService(cache, backend)
    guard = SubmissionGuard(
        cache,
        scheduler,
        cooldown=config.submission_cooldown,
        invalidate_keys=(cache_keys.waitlist_stats(),),
        invalidate_prefixes=(
            cache_keys.RECENT_ENTRIES_PREFIX,
            cache_keys.PAGINATED_STATS_PREFIX,
        ),
    )
    waitlist = WaitlistService(cache, backend, guard)
    monitor = SessionActivityMonitor(
        scheduler,
        signals,
        auth.sign_out,
        timeout=config.session_timeout,
        warning_lead=config.session_warning_lead,
    )
    warmer = CacheWarmer(
        cache,
        scheduler,
        auth,
        profiles,
        waitlist,
        warm_timeout=config.cache_warm_timeout,
        cleanup_interval=config.cache_cleanup_interval,
        stats_interval=config.cache_stats_interval,
        log_stats=config.is_development,
    )
    logger.info("core_created", session_timeout=config.session_timeout)
    return CoreServices(
        cache=cache,
        scheduler=scheduler,
        backend=backend,
        signals=signals,
        auth=auth,
        profiles=profiles,
        guard=guard,
        waitlist=waitlist,
        monitor=monitor,
        warmer=warmer,
    )
