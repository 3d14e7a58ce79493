"""
models/waitlist.py — Pydantic models for leads and waitlist aggregates.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class WaitlistEntry(BaseModel):
    """Matches the leads table row."""

    id: str
    email: str | None = None
    created_at: datetime

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "WaitlistEntry":
        return cls(**row)


class WaitlistStats(BaseModel):
    total_signups: int = 0
    today_signups: int = 0
    week_signups: int = 0
    month_signups: int = 0


class PaginatedStats(BaseModel):
    entries: list[WaitlistEntry] = Field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    page_size: int = 50
    total_pages: int = 0

    @classmethod
    def build(
        cls,
        entries: list[WaitlistEntry],
        total_count: int,
        page: int,
        page_size: int,
    ) -> "PaginatedStats":
        return cls(
            entries=entries,
            total_count=total_count,
            current_page=page,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size) if page_size else 0,
        )


class ExportResult(BaseModel):
    data: list[WaitlistEntry] = Field(default_factory=list)
    error: str | None = None


SubmissionStatus = Literal["accepted", "invalid", "cooldown", "duplicate", "failed"]


class SubmissionResult(BaseModel):
    status: SubmissionStatus
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "accepted"
