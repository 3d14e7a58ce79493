"""
models/auth.py — Pydantic models for auth sessions, users and permissions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """The authenticated account as seen by the core."""

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    @classmethod
    def from_auth(cls, user: Any) -> "AuthUser":
        """Build from a Supabase auth ``User`` object (or a plain dict)."""
        if isinstance(user, dict):
            return cls.model_validate(user)
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            email_confirmed_at=getattr(user, "email_confirmed_at", None),
            user_metadata=getattr(user, "user_metadata", None) or {},
        )


class AuthSession(BaseModel):
    """Matches the Supabase auth session."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    user: AuthUser

    @classmethod
    def from_auth(cls, session: Any) -> "AuthSession":
        """Build from a Supabase auth ``Session`` object (or a plain dict)."""
        if isinstance(session, dict):
            return cls.model_validate(session)
        return cls(
            access_token=session.access_token,
            refresh_token=getattr(session, "refresh_token", None),
            expires_at=getattr(session, "expires_at", None),
            user=AuthUser.from_auth(session.user),
        )


class AuthResult(BaseModel):
    user: AuthUser | None = None
    session: AuthSession | None = None
    error: str | None = None


class OperationResult(BaseModel):
    """Outcome of a write with nothing to return but a possible error."""

    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SessionResult(BaseModel):
    session: AuthSession | None = None
    error: str | None = None


class Permissions(BaseModel):
    has_access: bool = False
    is_admin: bool = False

    @classmethod
    def from_db_row(cls, row: dict[str, Any] | None) -> "Permissions":
        row = row or {}
        return cls(
            has_access=bool(row.get("has_access")),
            is_admin=row.get("customer_id") == "admin",
        )
