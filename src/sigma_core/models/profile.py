"""
models/profile.py — Pydantic models for the merged profiles / user_profiles row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ContactPreferences(BaseModel):
    email: bool = True
    phone: bool = False
    marketing: bool = False


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True
    in_app: bool = True
    marketing: bool = False


class CompleteProfile(BaseModel):
    """A user_profiles row joined with its basic profiles row."""

    id: str
    name: str = ""
    username: str = ""
    bio: str = ""
    profile_picture_url: str = ""
    profile_visibility: str = "public"
    contact_preferences: ContactPreferences = Field(default_factory=ContactPreferences)
    notification_preferences: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    email_verified: bool = False
    language: str = "en"
    region: str = ""
    stealth_mode: bool = False
    sdg_goals: list[str] = Field(default_factory=list)
    low_tech_access: bool = False
    business_type: str = ""
    time_commitment: str = ""
    capital_level: str = ""
    completion_percentage: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any], user_id: str | None = None) -> "CompleteProfile":
        """Merge a joined row; falsy columns fall back to the model defaults."""
        basic = row.get("profiles") or {}
        merged: dict[str, Any] = {
            "id": user_id or row.get("id"),
            "name": basic.get("name") or row.get("name"),
            "profile_picture_url": row.get("profile_picture_url") or basic.get("image"),
            "created_at": row.get("created_at") or basic.get("created_at"),
            "updated_at": row.get("updated_at") or basic.get("updated_at"),
        }
        for name in cls.model_fields:
            if name not in merged:
                merged[name] = row.get(name)
        return cls(**{k: v for k, v in merged.items() if v})

    def apply(self, updates: dict[str, Any]) -> "CompleteProfile":
        """Return a copy with the known fields of *updates* applied."""
        known = {k: v for k, v in updates.items() if k in type(self).model_fields and k != "id"}
        return type(self).model_validate({**self.model_dump(), **known})
