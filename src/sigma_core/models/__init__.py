"""
sigma_core.models — Pydantic models for cached entities and service results.

Row-backed models provide:
  .from_db_row(row: dict) -> Model
"""

from sigma_core.models.auth import (
    AuthResult,
    AuthSession,
    AuthUser,
    OperationResult,
    Permissions,
    SessionResult,
)
from sigma_core.models.profile import (
    CompleteProfile,
    ContactPreferences,
    NotificationPreferences,
)
from sigma_core.models.waitlist import (
    ExportResult,
    PaginatedStats,
    SubmissionResult,
    WaitlistEntry,
    WaitlistStats,
)

__all__ = [
    "AuthResult",
    "AuthSession",
    "AuthUser",
    "OperationResult",
    "Permissions",
    "SessionResult",
    "CompleteProfile",
    "ContactPreferences",
    "NotificationPreferences",
    "ExportResult",
    "PaginatedStats",
    "SubmissionResult",
    "WaitlistEntry",
    "WaitlistStats",
]
