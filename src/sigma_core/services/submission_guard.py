"""
services/submission_guard.py — Cooldown and duplicate screening for public writes.

Keeps rapid or known-duplicate submissions off the backend:

  1. normalize (trim, lowercase) and validate the identity
  2. reject if the identity is cooling down or already being submitted
  3. reject if the cache already knows the identity exists
  4. otherwise run the write; a uniqueness violation is cached as "exists",
     a success starts the cooldown and invalidates aggregate keys

Usage:
    guard = SubmissionGuard(cache, scheduler, cooldown=60)
    result = await guard.submit(email, backend.insert_lead)
    if not result.success:
        print(result.error)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

import structlog

from sigma_core import cache_keys
from sigma_core.constants import EMAIL_PATTERN, CacheTTL
from sigma_core.errors import BackendError, DuplicateRecordError
from sigma_core.models.waitlist import SubmissionResult
from sigma_core.utils.cache import TTLCache
from sigma_core.utils.scheduler import Scheduler, TimerHandle

log = structlog.get_logger(__name__)

MSG_REQUIRED = "Email is required"
MSG_INVALID = "Please enter a valid email address"
MSG_COOLDOWN = "Please wait before submitting again"
MSG_DUPLICATE = "Email already registered"
MSG_FAILED = "Failed to join waitlist. Please try again."


@dataclass
class SubmissionGuardEntry:
    normalized_identity: str
    cooldown_expires_at: float
    timer: TimerHandle


class SubmissionGuard:
    def __init__(
        self,
        cache: TTLCache,
        scheduler: Scheduler,
        *,
        cooldown: float,
        invalidate_keys: Iterable[str] = (),
        invalidate_prefixes: Iterable[str] = (),
    ) -> None:
        self._cache = cache
        self._scheduler = scheduler
        self._cooldown = cooldown
        self._invalidate_keys = tuple(invalidate_keys)
        self._invalidate_prefixes = tuple(invalidate_prefixes)
        self._cooldowns: dict[str, SubmissionGuardEntry] = {}
        self._in_flight: set[str] = set()

    @staticmethod
    def normalize(identity: str) -> str:
        return identity.strip().lower()

    @staticmethod
    def validate(normalized: str) -> str | None:
        """Return a user-facing error for a malformed identity, else None."""
        if not normalized:
            return MSG_REQUIRED
        if not EMAIL_PATTERN.match(normalized):
            return MSG_INVALID
        return None

    def in_cooldown(self, normalized: str) -> bool:
        entry = self._cooldowns.get(normalized)
        return entry is not None and entry.cooldown_expires_at > self._scheduler.now()

    async def submit(
        self, identity: str, write: Callable[[str], Awaitable[object]]
    ) -> SubmissionResult:
        normalized = self.normalize(identity)
        problem = self.validate(normalized)
        if problem is not None:
            return SubmissionResult(status="invalid", error=problem)

        # Check and reserve before the first await.
        if self.in_cooldown(normalized) or normalized in self._in_flight:
            log.info("submission_rate_limited", identity=normalized)
            return SubmissionResult(status="cooldown", error=MSG_COOLDOWN)

        exists_key = cache_keys.email_exists(normalized)
        if self._cache.get(exists_key) is True:
            log.info("submission_known_duplicate", identity=normalized)
            return SubmissionResult(status="duplicate", error=MSG_DUPLICATE)

        self._in_flight.add(normalized)
        try:
            await write(normalized)
        except DuplicateRecordError:
            self._cache.set(exists_key, True, CacheTTL.LONG)
            log.info("submission_duplicate", identity=normalized)
            return SubmissionResult(status="duplicate", error=MSG_DUPLICATE)
        except BackendError as exc:
            log.error("submission_failed", identity=normalized, error=str(exc))
            return SubmissionResult(status="failed", error=MSG_FAILED)
        finally:
            self._in_flight.discard(normalized)

        self._start_cooldown(normalized)
        self._cache.set(exists_key, True, CacheTTL.LONG)
        for key in self._invalidate_keys:
            self._cache.delete(key)
        for prefix in self._invalidate_prefixes:
            self._cache.delete_prefix(prefix)
        log.info("submission_accepted", identity=normalized)
        return SubmissionResult(status="accepted")

    def cancel_all(self) -> None:
        """Drop every pending cooldown and its timer."""
        for entry in self._cooldowns.values():
            entry.timer.cancel()
        self._cooldowns.clear()

    def _start_cooldown(self, normalized: str) -> None:
        previous = self._cooldowns.pop(normalized, None)
        if previous is not None:
            previous.timer.cancel()
        timer = self._scheduler.after(self._cooldown, lambda: self._release(normalized))
        self._cooldowns[normalized] = SubmissionGuardEntry(
            normalized_identity=normalized,
            cooldown_expires_at=self._scheduler.now() + self._cooldown,
            timer=timer,
        )

    def _release(self, normalized: str) -> None:
        self._cooldowns.pop(normalized, None)
