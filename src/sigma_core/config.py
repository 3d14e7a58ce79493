"""
config.py — pydantic-settings Settings class.

All environment variables for sigma_core are declared here. Durations are
in seconds.

Usage:
    from sigma_core.config import settings
    print(settings.session_timeout)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")
    password_reset_url: str = Field(default="http://localhost:5173/reset-password")

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------
    session_timeout: float = Field(default=30 * 60, gt=0)
    session_warning_lead: float = Field(default=5 * 60, gt=0)
    session_storage_path: str = Field(default="./.sigma/session.json")

    # -------------------------------------------------------------------------
    # Cache / submissions
    # -------------------------------------------------------------------------
    submission_cooldown: float = Field(default=60, gt=0)
    cache_warm_timeout: float = Field(default=2, gt=0)
    cache_cleanup_interval: float = Field(default=5 * 60, gt=0)
    cache_stats_interval: float = Field(default=10 * 60, gt=0)

    environment: Literal["development", "production"] = Field(default="production")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @field_validator("supabase_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v

    @model_validator(mode="after")
    def warning_precedes_timeout(self) -> "Settings":
        if self.session_warning_lead >= self.session_timeout:
            raise ValueError("session_warning_lead must be shorter than session_timeout")
        return self


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
