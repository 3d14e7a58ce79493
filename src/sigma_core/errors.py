"""Errors raised by the backend adapter and caught at the service boundary."""

from __future__ import annotations


class BackendError(Exception):
    """A backend data-service call failed."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class DuplicateRecordError(BackendError):
    """A write hit a uniqueness constraint (expected, not a failure)."""


class AuthError(BackendError):
    """The auth service rejected or failed a request."""
