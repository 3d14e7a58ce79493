"""Profile accessors with read-through caching and write invalidation."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from pydantic import ValidationError

from sigma_core import cache_keys
from sigma_core.backend import SupabaseBackend
from sigma_core.constants import MIN_USERNAME_LENGTH, CacheTTL
from sigma_core.errors import BackendError
from sigma_core.models.profile import CompleteProfile
from sigma_core.utils.cache import TTLCache

log = structlog.get_logger(__name__)


class ProfileService:
    def __init__(self, cache: TTLCache, backend: SupabaseBackend) -> None:
        self._cache = cache
        self._backend = backend

    async def get_complete_profile(self, user_id: str) -> CompleteProfile | None:
        """Return the merged profile, creating a minimal row when none exists.

        ``None`` means the profile could not be loaded or created; it does
        not distinguish a missing user from a backend failure.
        """
        key = cache_keys.profile_settings(user_id)
        cached = self._cache.get(key)
        if cached is not None:
            log.debug("profile_cache_hit", user_id=user_id)
            return cached

        log.debug("profile_cache_miss", user_id=user_id)
        try:
            row = await self._backend.fetch_profile(user_id)
            if row is None:
                log.info("profile_created", user_id=user_id)
                row = await self._backend.create_profile(user_id)
        except BackendError as exc:
            log.error("get_profile_failed", user_id=user_id, error=str(exc))
            return None

        if row is None:
            return None
        profile = CompleteProfile.from_db_row(row, user_id)
        self._cache.set(key, profile, CacheTTL.MEDIUM)
        return profile

    async def update_profile(
        self, user_id: str, updates: dict[str, Any]
    ) -> CompleteProfile | None:
        if "username" in updates:
            self._invalidate_usernames(user_id, updates["username"])
        self._invalidate(user_id)

        basic_updates: dict[str, Any] = {}
        user_profile_updates: dict[str, Any] = {}
        for field, value in updates.items():
            if field == "id":
                continue
            if field == "name":
                basic_updates["name"] = value
            user_profile_updates[field] = value

        writes = []
        if basic_updates:
            writes.append(self._backend.update_basic_profile(user_id, basic_updates))
        if user_profile_updates:
            writes.append(self._backend.upsert_user_profile(user_id, user_profile_updates))

        try:
            await asyncio.gather(*writes)
        except BackendError as exc:
            log.error("update_profile_failed", user_id=user_id, error=str(exc))
            return None

        return await self.get_complete_profile(user_id)

    async def auto_save(self, user_id: str, updates: dict[str, Any]) -> bool:
        """Patch the cached profile at once, then persist the change.

        Returns False when the write failed; the patched entry is then
        dropped so the next read goes back to the backend.
        """
        if "username" in updates:
            self._invalidate_usernames(user_id, updates["username"])
        key = cache_keys.profile_settings(user_id)
        current = self._cache.get(key)
        if current is not None:
            try:
                self._cache.set(key, current.apply(updates), CacheTTL.MEDIUM)
            except ValidationError as exc:
                # Unpatchable locally; drop the entry and let the write decide.
                log.warning("auto_save_patch_rejected", user_id=user_id, error=str(exc))
                self._cache.delete(key)
        self._cache.delete(cache_keys.user_profile(user_id))

        fields = {k: v for k, v in updates.items() if k != "id"}
        if not fields:
            return True
        try:
            await self._backend.upsert_user_profile(user_id, fields)
        except BackendError as exc:
            log.error("auto_save_failed", user_id=user_id, error=str(exc))
            self._cache.delete(key)
            return False
        return True

    async def check_username_availability(
        self, username: str, exclude_user_id: str | None = None
    ) -> bool:
        if not username or len(username) < MIN_USERNAME_LENGTH:
            return False

        key = cache_keys.username_check(username)
        if exclude_user_id is None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        try:
            count = await self._backend.count_username(username, exclude_user_id)
        except BackendError as exc:
            log.error("username_check_failed", username=username, error=str(exc))
            return False

        available = count == 0
        if exclude_user_id is None:
            self._cache.set(key, available, CacheTTL.LONG)
        return available

    async def get_multiple_profiles(self, user_ids: list[str]) -> list[CompleteProfile]:
        """Load many profiles with at most one backend call for the uncached ones."""
        found: dict[str, CompleteProfile] = {}
        uncached: list[str] = []
        for user_id in dict.fromkeys(user_ids):
            cached = self._cache.get(cache_keys.profile_settings(user_id))
            if cached is not None:
                found[user_id] = cached
            else:
                uncached.append(user_id)

        if uncached:
            try:
                rows = await self._backend.fetch_profiles(uncached)
            except BackendError as exc:
                log.error("get_multiple_profiles_failed", count=len(uncached), error=str(exc))
                rows = []
            for row in rows:
                profile = CompleteProfile.from_db_row(row)
                found[profile.id] = profile
                self._cache.set(cache_keys.profile_settings(profile.id), profile, CacheTTL.MEDIUM)

        log.debug("profiles_loaded", requested=len(user_ids), fetched=len(uncached))
        return [found[user_id] for user_id in dict.fromkeys(user_ids) if user_id in found]

    def clear_user_cache(self, user_id: str) -> None:
        self._invalidate(user_id)
        self._cache.delete(cache_keys.basic_profile(user_id))
        self._cache.delete(cache_keys.user_permissions(user_id))

    def _invalidate_usernames(self, user_id: str, new_username: Any) -> None:
        current = self._cache.get(cache_keys.profile_settings(user_id))
        if current is not None and current.username:
            self._cache.delete(cache_keys.username_check(current.username))
        if isinstance(new_username, str) and new_username:
            self._cache.delete(cache_keys.username_check(new_username))

    def _invalidate(self, user_id: str) -> None:
        self._cache.delete(cache_keys.profile_settings(user_id))
        self._cache.delete(cache_keys.user_profile(user_id))
