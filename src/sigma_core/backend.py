"""
backend.py — The backend data service as the core sees it.

SupabaseBackend wraps supabase.AsyncClient and exposes one coroutine per
backend operation the accessors need. It owns two translations:

  - rows / auth objects  -> sigma_core.models (or plain row dicts)
  - PostgREST / auth exceptions -> sigma_core.errors

Nothing here caches or retries; callers decide what to do with a failure.

Usage:
    from sigma_core.backend import SupabaseBackend
    from sigma_core.db import get_supabase_client

    backend = SupabaseBackend(await get_supabase_client())
    session = await backend.get_session()
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import structlog
from postgrest.exceptions import APIError

from sigma_core.constants import (
    LEADS_TABLE,
    PROFILES_TABLE,
    UNIQUE_VIOLATION,
    USER_PROFILES_TABLE,
)
from sigma_core.errors import AuthError, BackendError, DuplicateRecordError
from sigma_core.models.auth import AuthSession, AuthUser

log = structlog.get_logger(__name__)

PROFILE_SELECT = (
    "*, profiles!inner(name, email, image, has_access, created_at, updated_at)"
)

AuthStateCallback = Callable[[str, AuthSession | None], None]


class SupabaseBackend:
    """Async adapter over a Supabase client (anon key, RLS applies)."""

    def __init__(self, client: Any) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _execute(self, query: Any) -> Any:
        try:
            return await query.execute()
        except APIError as exc:
            code = getattr(exc, "code", None)
            message = getattr(exc, "message", None) or str(exc)
            if code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(message, code=code) from exc
            raise BackendError(message, code=code) from exc
        except Exception as exc:
            raise BackendError(str(exc)) from exc

    async def _auth_call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except Exception as exc:
            log.debug("auth_call_failed", operation=operation, error=str(exc))
            raise AuthError(str(exc), code=getattr(exc, "code", None)) from exc

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def get_session(self) -> AuthSession | None:
        session = await self._auth_call("get_session", self._client.auth.get_session())
        return AuthSession.from_auth(session) if session else None

    async def sign_in(self, email: str, password: str) -> AuthResponseParts:
        response = await self._auth_call(
            "sign_in",
            self._client.auth.sign_in_with_password({"email": email, "password": password}),
        )
        return _response_parts(response)

    async def sign_up(self, email: str, password: str) -> AuthResponseParts:
        response = await self._auth_call(
            "sign_up",
            self._client.auth.sign_up({"email": email, "password": password}),
        )
        return _response_parts(response)

    async def sign_out(self) -> None:
        await self._auth_call("sign_out", self._client.auth.sign_out())

    async def refresh_session(self) -> AuthSession | None:
        response = await self._auth_call("refresh_session", self._client.auth.refresh_session())
        return _response_parts(response)[1]

    async def reset_password(self, email: str, redirect_to: str) -> None:
        await self._auth_call(
            "reset_password",
            self._client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}),
        )

    async def update_password(self, new_password: str) -> None:
        await self._auth_call(
            "update_password",
            self._client.auth.update_user({"password": new_password}),
        )

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Subscribe to backend auth events. Returns an unsubscribe function."""

        def _relay(event: Any, session: Any) -> None:
            callback(str(event), AuthSession.from_auth(session) if session else None)

        subscription = self._client.auth.on_auth_state_change(_relay)
        return subscription.unsubscribe

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def fetch_profile(self, user_id: str) -> dict[str, Any] | None:
        result = await self._execute(
            self._client.table(USER_PROFILES_TABLE)
            .select(PROFILE_SELECT)
            .eq("id", user_id)
            .limit(1)
        )
        return result.data[0] if result.data else None

    async def fetch_profiles(self, user_ids: list[str]) -> list[dict[str, Any]]:
        result = await self._execute(
            self._client.table(USER_PROFILES_TABLE)
            .select(PROFILE_SELECT)
            .in_("id", user_ids)
        )
        return result.data or []

    async def create_profile(self, user_id: str) -> dict[str, Any] | None:
        result = await self._execute(
            self._client.table(USER_PROFILES_TABLE).insert({"id": user_id})
        )
        if not result.data:
            return None
        # Re-read so the joined basic profile columns are present.
        return await self.fetch_profile(user_id)

    async def insert_basic_profile(self, user_id: str, email: str | None) -> None:
        await self._execute(
            self._client.table(PROFILES_TABLE).insert(
                {"id": user_id, "email": email, "has_access": True}
            )
        )

    async def update_basic_profile(self, user_id: str, updates: dict[str, Any]) -> None:
        await self._execute(
            self._client.table(PROFILES_TABLE).update(updates).eq("id", user_id)
        )

    async def upsert_user_profile(self, user_id: str, updates: dict[str, Any]) -> None:
        await self._execute(
            self._client.table(USER_PROFILES_TABLE).upsert({"id": user_id, **updates})
        )

    async def fetch_permissions(self, user_id: str) -> dict[str, Any] | None:
        result = await self._execute(
            self._client.table(PROFILES_TABLE)
            .select("has_access, customer_id")
            .eq("id", user_id)
            .limit(1)
        )
        return result.data[0] if result.data else None

    async def count_username(self, username: str, exclude_user_id: str | None = None) -> int:
        query = (
            self._client.table(USER_PROFILES_TABLE)
            .select("username", count="exact", head=True)
            .eq("username", username.lower())
        )
        if exclude_user_id:
            query = query.neq("id", exclude_user_id)
        result = await self._execute(query)
        return result.count or 0

    # ------------------------------------------------------------------
    # Leads (waitlist)
    # ------------------------------------------------------------------

    async def insert_lead(self, email: str) -> None:
        """Insert a lead. Raises DuplicateRecordError if already present."""
        await self._execute(self._client.table(LEADS_TABLE).insert({"email": email}))

    async def find_lead(self, email: str) -> dict[str, Any] | None:
        result = await self._execute(
            self._client.table(LEADS_TABLE).select("id").eq("email", email).limit(1)
        )
        return result.data[0] if result.data else None

    async def count_leads(self, since: datetime | None = None) -> int:
        """Exact lead count, optionally only those created at or after *since*."""
        query = self._client.table(LEADS_TABLE).select("id", count="exact", head=True)
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        result = await self._execute(query)
        return result.count or 0

    async def list_leads(
        self, *, limit: int | None = None, offset: int = 0
    ) -> list[dict[str, Any]]:
        query = (
            self._client.table(LEADS_TABLE)
            .select("id, email, created_at")
            .order("created_at", desc=True)
        )
        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        result = await self._execute(query)
        return result.data or []


AuthResponseParts = tuple[AuthUser | None, AuthSession | None]


def _response_parts(response: Any) -> AuthResponseParts:
    user = getattr(response, "user", None)
    session = getattr(response, "session", None)
    return (
        AuthUser.from_auth(user) if user else None,
        AuthSession.from_auth(session) if session else None,
    )
