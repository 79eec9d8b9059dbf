"""
Configuration settings for the assessment CLI.

Uses Pydantic Settings for environment variable management with .env file support.
Environment variables use the ASSESSMENT_ prefix, e.g. ASSESSMENT_API_TOKEN.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ASSESSMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Test Provider API
    # ========================================
    api_base_url: str = Field(
        default="http://localhost:3000/api/v1",
        description="Base URL of the assessment backend",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token of the signed-in user",
    )
    owner_id: str = Field(
        default="local",
        description="Id of the signed-in user; progress of other users is never resumed",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Per-request timeout; exceeded requests fail with TimedOut",
    )

    # ========================================
    # Progress Persistence
    # ========================================
    progress_dir: Path = Field(
        default=Path.home() / ".assessment" / "progress",
        description="Directory holding one progress snapshot per assessment type",
    )
    progress_retention_hours: int = Field(
        default=24,
        description="Saved progress older than this is discarded",
    )

    # ========================================
    # Sessions
    # ========================================
    submit_auto_retries: int = Field(
        default=1,
        description="Automatic retries of a failed submission before surfacing the error",
    )
    submit_retry_delay_seconds: float = Field(
        default=1.0,
        description="Pause between submission attempts",
    )
    fallback_time_limit_overrides: dict[str, int] = Field(
        default_factory=dict,
        description="Per-type seconds used when the provider declares time_limit 0",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
