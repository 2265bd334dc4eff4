"""
Configuration settings for the EduKid assessment engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EDUKID_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Remote API
    # ========================================
    content_api_url: str | None = Field(
        default=None,
        description="Base URL of the content provider (quiz/puzzle generation)",
    )
    scoring_api_url: str | None = Field(
        default=None,
        description="Base URL of the remote scoring service (None = always score locally)",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token sent to the content and scoring services",
    )
    parent_id: str = Field(
        default="",
        description="Parent account that owns the child profile",
    )
    kid_id: str = Field(
        default="",
        description="Child profile the sessions are played for",
    )
    request_timeout_ms: int = Field(
        default=30000,
        description="Timeout for a single HTTP request in milliseconds",
    )
    request_retry_attempts: int = Field(
        default=3,
        description="Attempts per remote call before giving up",
    )

    # ========================================
    # Sessions
    # ========================================
    retry_generation_enabled: bool = Field(
        default=True,
        description="Request a practice activity after any incorrect answer",
    )
    default_question_count: int = Field(
        default=5,
        description="Question count requested when no age-based count is known",
    )
    default_subject: str = Field(
        default="math",
        description="Subject requested when there is no history to adapt from",
    )

    # ========================================
    # History
    # ========================================
    history_database_url: str = Field(
        default="sqlite:///edukid_history.db",
        description="SQLAlchemy URL of the append-only activity history",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_http_config(self) -> dict[str, int | str | None]:
        """Get the options shared by the HTTP clients."""
        return {
            "api_token": self.api_token,
            "parent_id": self.parent_id,
            "kid_id": self.kid_id,
            "timeout_ms": self.request_timeout_ms,
            "retry_attempts": self.request_retry_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
