"""Auth accessors: cached session and permissions, cache-clearing sign-out."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from sigma_core import cache_keys
from sigma_core.backend import SupabaseBackend
from sigma_core.config import settings
from sigma_core.constants import CacheTTL
from sigma_core.errors import BackendError
from sigma_core.models.auth import (
    AuthResult,
    AuthSession,
    AuthUser,
    OperationResult,
    Permissions,
    SessionResult,
)
from sigma_core.utils.cache import TTLCache

if TYPE_CHECKING:
    from sigma_core.services.profile_service import ProfileService

log = structlog.get_logger(__name__)

AuthListener = Callable[[AuthUser | None], None]


class AuthService:
    def __init__(
        self,
        cache: TTLCache,
        backend: SupabaseBackend,
        *,
        password_reset_url: str | None = None,
    ) -> None:
        self._cache = cache
        self._backend = backend
        self._password_reset_url = password_reset_url or settings.password_reset_url
        self._listeners: list[AuthListener] = []
        self._unsubscribe_backend: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_current_session(self) -> AuthSession | None:
        key = cache_keys.auth_session()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            session = await self._backend.get_session()
        except BackendError as exc:
            log.error("get_session_failed", error=str(exc))
            return None

        if session is not None:
            self._cache.set(key, session, CacheTTL.SESSION)
        return session

    async def get_current_user(self) -> AuthUser | None:
        session = await self.get_current_session()
        return session.user if session else None

    async def check_user_permissions(self, user_id: str) -> Permissions:
        key = cache_keys.user_permissions(user_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            row = await self._backend.fetch_permissions(user_id)
        except BackendError as exc:
            log.error("check_permissions_failed", user_id=user_id, error=str(exc))
            return Permissions()

        permissions = Permissions.from_db_row(row)
        self._cache.set(key, permissions, CacheTTL.LONG)
        return permissions

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> AuthResult:
        self.clear_auth_cache()
        try:
            user, session = await self._backend.sign_up(email, password)
        except BackendError as exc:
            return AuthResult(error=exc.message)

        if user is not None and not user.is_confirmed:
            # The database trigger normally creates this row; insert is best effort.
            try:
                await self._backend.insert_basic_profile(user.id, user.email)
            except BackendError as exc:
                log.info("signup_profile_deferred", user_id=user.id, error=exc.message)

        self._notify(user)
        return AuthResult(user=user, session=session)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        key = cache_keys.auth_session()
        self._cache.delete(key)
        try:
            user, session = await self._backend.sign_in(email, password)
        except BackendError as exc:
            return AuthResult(error=exc.message)

        if session is not None:
            self._cache.set(key, session, CacheTTL.SESSION)
        self._notify(user)
        return AuthResult(user=user, session=session)

    async def sign_out(self) -> OperationResult:
        self.clear_all_user_cache()
        error: str | None = None
        try:
            await self._backend.sign_out()
        except BackendError as exc:
            log.error("sign_out_failed", error=exc.message)
            error = exc.message
        finally:
            # Reads racing the sign-out may have repopulated the cache.
            self.clear_all_user_cache()

        self._notify(None)
        return OperationResult(error=error)

    async def refresh_session(self) -> SessionResult:
        try:
            session = await self._backend.refresh_session()
        except BackendError as exc:
            return SessionResult(error=exc.message)

        if session is not None:
            self._cache.set(cache_keys.auth_session(), session, CacheTTL.SESSION)
        return SessionResult(session=session)

    async def reset_password(self, email: str) -> OperationResult:
        try:
            await self._backend.reset_password(email, self._password_reset_url)
        except BackendError as exc:
            return OperationResult(error=exc.message)
        return OperationResult()

    async def update_password(self, new_password: str) -> OperationResult:
        self.clear_auth_cache()
        try:
            await self._backend.update_password(new_password)
        except BackendError as exc:
            return OperationResult(error=exc.message)
        return OperationResult()

    # ------------------------------------------------------------------
    # Auth-state fan-out
    # ------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register *callback* for user changes. Returns an unsubscribe function.

        The backend subscription is opened with the first listener and
        closed again when the last one leaves.
        """
        self._listeners.append(callback)
        if self._unsubscribe_backend is None:
            self._unsubscribe_backend = self._backend.on_auth_state_change(
                self.handle_auth_event
            )

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
            if not self._listeners and self._unsubscribe_backend is not None:
                self._unsubscribe_backend()
                self._unsubscribe_backend = None

        return unsubscribe

    def handle_auth_event(self, event: str, session: AuthSession | None) -> None:
        log.info("auth_state_changed", auth_event=event)
        if event in ("SIGNED_OUT", "TOKEN_REFRESHED"):
            self.clear_auth_cache()
        if event == "SIGNED_OUT":
            self.clear_all_user_cache()
        if session is not None:
            self._cache.set(cache_keys.auth_session(), session, CacheTTL.SESSION)
        self._notify(session.user if session else None)

    def _notify(self, user: AuthUser | None) -> None:
        for callback in list(self._listeners):
            try:
                callback(user)
            except Exception as exc:
                log.error("auth_listener_failed", error=str(exc), exc_info=True)

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    async def warm_auth_cache(self, profiles: ProfileService) -> None:
        session = await self.get_current_session()
        if session is not None:
            await self.check_user_permissions(session.user.id)
            await profiles.get_complete_profile(session.user.id)
        log.info("auth_cache_warmed", signed_in=session is not None)

    def clear_auth_cache(self) -> None:
        self._cache.delete(cache_keys.auth_session())

    def clear_all_user_cache(self) -> None:
        # Everything goes: another user's data must not outlive the session.
        self._cache.clear()
