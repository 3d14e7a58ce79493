"""Waitlist accessors: cached stats and lookups, guarded signups."""

from __future__ import annotations

import asyncio
import calendar
from datetime import date, datetime, timedelta, timezone

import structlog

from sigma_core import cache_keys
from sigma_core.backend import SupabaseBackend
from sigma_core.constants import WARM_RECENT_ENTRIES, CacheTTL
from sigma_core.errors import BackendError
from sigma_core.models.waitlist import (
    ExportResult,
    PaginatedStats,
    SubmissionResult,
    WaitlistEntry,
    WaitlistStats,
)
from sigma_core.services.submission_guard import SubmissionGuard
from sigma_core.utils.cache import TTLCache

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def stat_boundaries(now: datetime) -> tuple[datetime, datetime, datetime]:
    """Start of today, seven days back and one month back (UTC midnight)."""
    today = datetime.combine(now.date(), datetime.min.time(), tzinfo=timezone.utc)
    week_ago = today - timedelta(days=7)
    month_ago = datetime.combine(_month_before(now.date()), datetime.min.time(), tzinfo=timezone.utc)
    return today, week_ago, month_ago


class WaitlistService:
    def __init__(
        self,
        cache: TTLCache,
        backend: SupabaseBackend,
        guard: SubmissionGuard,
    ) -> None:
        self._cache = cache
        self._backend = backend
        self._guard = guard

    async def add_to_waitlist(self, email: str) -> SubmissionResult:
        return await self._guard.submit(email, self._backend.insert_lead)

    async def get_waitlist_stats(self) -> WaitlistStats:
        try:
            return await self._load_stats()
        except BackendError as exc:
            log.error("waitlist_stats_failed", error=str(exc))
            return WaitlistStats()

    async def check_email_exists(self, email: str) -> bool:
        normalized = SubmissionGuard.normalize(email)
        key = cache_keys.email_exists(normalized)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            row = await self._backend.find_lead(normalized)
        except BackendError as exc:
            log.error("email_exists_check_failed", error=str(exc))
            return False

        exists = row is not None
        self._cache.set(key, exists, CacheTTL.LONG)
        return exists

    async def get_recent_entries(self, limit: int = 10, offset: int = 0) -> list[WaitlistEntry]:
        try:
            return await self._load_recent(limit, offset)
        except BackendError as exc:
            log.error("recent_entries_failed", limit=limit, offset=offset, error=str(exc))
            return []

    async def get_paginated_stats(self, page: int = 1, page_size: int = 50) -> PaginatedStats:
        key = cache_keys.paginated_stats(page, page_size)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        results = await asyncio.gather(
            self._load_recent(page_size, (page - 1) * page_size),
            self._load_stats(),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            if not isinstance(failure, BackendError):
                raise failure
        if failures:
            # Zeros from a failed read must not be cached as the page.
            log.error("paginated_stats_failed", page=page, error=str(failures[0]))
            return PaginatedStats.build([], 0, page, page_size)

        entries, stats = results
        result = PaginatedStats.build(entries, stats.total_signups, page, page_size)
        self._cache.set(key, result, CacheTTL.SHORT)
        return result

    async def export_waitlist(self, limit: int | None = None) -> ExportResult:
        """Full export straight from the backend; never cached."""
        try:
            rows = await self._backend.list_leads(limit=limit)
        except BackendError as exc:
            log.error("export_waitlist_failed", error=str(exc))
            return ExportResult(error=exc.message)
        return ExportResult(data=[WaitlistEntry.from_db_row(r) for r in rows])

    async def warm_cache(self) -> None:
        await self.get_waitlist_stats()
        await self.get_recent_entries(WARM_RECENT_ENTRIES)
        log.info("waitlist_cache_warmed")

    # ------------------------------------------------------------------
    # Cached loads; raise BackendError instead of returning defaults
    # ------------------------------------------------------------------

    async def _load_stats(self) -> WaitlistStats:
        key = cache_keys.waitlist_stats()
        cached = self._cache.get(key)
        if cached is not None:
            log.debug("waitlist_stats_cache_hit")
            return cached

        today, week_ago, month_ago = stat_boundaries(_utcnow())
        total, today_count, week_count, month_count = await asyncio.gather(
            self._backend.count_leads(),
            self._backend.count_leads(since=today),
            self._backend.count_leads(since=week_ago),
            self._backend.count_leads(since=month_ago),
        )
        stats = WaitlistStats(
            total_signups=total,
            today_signups=today_count,
            week_signups=week_count,
            month_signups=month_count,
        )
        self._cache.set(key, stats, CacheTTL.MEDIUM)
        log.info("waitlist_stats_loaded", total_signups=stats.total_signups)
        return stats

    async def _load_recent(self, limit: int, offset: int) -> list[WaitlistEntry]:
        key = cache_keys.recent_entries(limit, offset)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        rows = await self._backend.list_leads(limit=limit, offset=offset)
        entries = [WaitlistEntry.from_db_row(r) for r in rows]
        self._cache.set(key, entries, CacheTTL.SHORT)
        return entries
