"""
warmer.py — Startup cache warming and periodic cache maintenance.

initialize() prefetches the entries the first screens need (session,
permissions, profile, waitlist stats, first page of leads) concurrently and
stops waiting after a fixed budget so a slow backend never delays startup.
Prefetches still in flight when the budget runs out keep going and fill
the cache when they land.

Usage:
    warmer = CacheWarmer(cache, scheduler, auth, profiles, waitlist)
    await warmer.initialize()
    ...
    warmer.stop()
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any

import psutil
import structlog

from sigma_core.config import settings
from sigma_core.services.auth_service import AuthService
from sigma_core.services.profile_service import ProfileService
from sigma_core.services.waitlist_service import WaitlistService
from sigma_core.utils.cache import TTLCache
from sigma_core.utils.scheduler import Scheduler, TimerHandle

log = structlog.get_logger(__name__)


class CacheWarmer:
    def __init__(
        self,
        cache: TTLCache,
        scheduler: Scheduler,
        auth: AuthService,
        profiles: ProfileService,
        waitlist: WaitlistService,
        *,
        warm_timeout: float | None = None,
        cleanup_interval: float | None = None,
        stats_interval: float | None = None,
        log_stats: bool | None = None,
    ) -> None:
        self._cache = cache
        self._scheduler = scheduler
        self._auth = auth
        self._profiles = profiles
        self._waitlist = waitlist
        self.warm_timeout = (
            settings.cache_warm_timeout if warm_timeout is None else warm_timeout
        )
        self.cleanup_interval = (
            settings.cache_cleanup_interval if cleanup_interval is None else cleanup_interval
        )
        self.stats_interval = (
            settings.cache_stats_interval if stats_interval is None else stats_interval
        )
        self.log_stats = settings.is_development if log_stats is None else log_stats
        self._timers: list[TimerHandle] = []
        self._in_flight: set[asyncio.Task[Any]] = set()

    async def initialize(self) -> bool:
        """Warm the cache, then install the sweep. Returns True if warming finished in time."""
        finished = False
        try:
            finished = await self.warm()
            log.info("cache_initialized", warmed=finished, **self._stats_dict())
        except Exception as exc:
            log.error("cache_initialize_failed", error=str(exc), exc_info=True)
        self.start_cleanup()
        return finished

    async def warm(self) -> bool:
        tasks = {
            asyncio.ensure_future(self._auth.warm_auth_cache(self._profiles)),
            asyncio.ensure_future(self._waitlist.warm_cache()),
        }
        for task in tasks:
            self._in_flight.add(task)
            task.add_done_callback(self._prefetch_done)

        _, pending = await asyncio.wait(tasks, timeout=self.warm_timeout)
        if pending:
            log.warning("cache_warm_timeout", pending=len(pending), timeout=self.warm_timeout)
        return not pending

    def start_cleanup(self) -> None:
        if self._timers:
            return
        self._timers.append(self._scheduler.every(self.cleanup_interval, self.sweep))
        if self.log_stats:
            self._timers.append(
                self._scheduler.every(
                    self.stats_interval,
                    lambda: log.info("cache_stats", **self._stats_dict()),
                )
            )

    def sweep(self) -> int:
        evicted = self._cache.cleanup()
        log.debug("cache_swept", evicted=evicted, **self._stats_dict())
        return evicted

    async def preload_user_data(self, user_id: str) -> None:
        await self._auth.check_user_permissions(user_id)
        log.info("user_data_preloaded", user_id=user_id)

    def clear_all_caches(self) -> None:
        self._cache.clear()
        log.info("caches_cleared")

    def get_performance_stats(self) -> dict[str, Any]:
        memory = psutil.Process().memory_info()
        return {
            "cache": self._stats_dict(),
            "memory": {"rss_mb": round(memory.rss / (1024 ** 2), 1)},
            "prefetches_in_flight": len(self._in_flight),
        }

    def stop(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    def _stats_dict(self) -> dict[str, int]:
        return asdict(self._cache.get_stats())

    def _prefetch_done(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("cache_prefetch_failed", error=str(task.exception()))
