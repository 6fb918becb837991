"""
MindPair — Application Configuration

Every tunable of the service (store backend and call policy, token TTL,
HTTP deadlines, logging) comes from the environment or an optional .env
file and is validated once.  Read it through ``get_settings()``; tests build
their own ``Settings(_env_file=None, ...)`` and pass it in explicitly.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the MindPair service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    DATABASE_URL: str = "sqlite+aiosqlite:///./mindpair.db"

    # "sql" talks to DATABASE_URL, "memory" keeps everything in-process
    STORE_BACKEND: str = "sql"

    # ------------------------------------------------------------------ #
    # Store call policy
    # ------------------------------------------------------------------ #
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_MAX_WAIT_SECONDS: float = 2.0

    # ------------------------------------------------------------------ #
    # HTTP server
    # ------------------------------------------------------------------ #
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    SHUTDOWN_DRAIN_SECONDS: float = 15.0

    # ------------------------------------------------------------------ #
    # Compare tokens
    # ------------------------------------------------------------------ #
    COMPARE_TOKEN_TTL_MINUTES: int = 1440   # 24 hours
    TOKEN_GENERATION_MAX_ATTEMPTS: int = 5
    PUBLIC_BASE_URL: str = "http://localhost:5173"

    # ------------------------------------------------------------------ #
    # Questionnaire
    # ------------------------------------------------------------------ #
    QUIZ_SLUG: str = "rumination"

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator("STORE_BACKEND")
    @classmethod
    def _backend_must_be_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sql", "memory"):
            raise ValueError(f"STORE_BACKEND must be 'sql' or 'memory', got {v!r}")
        return v

    @field_validator(
        "COMPARE_TOKEN_TTL_MINUTES",
        "TOKEN_GENERATION_MAX_ATTEMPTS",
        "STORE_RETRY_ATTEMPTS",
    )
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @field_validator("STORE_TIMEOUT_SECONDS", "REQUEST_TIMEOUT_SECONDS", "SHUTDOWN_DRAIN_SECONDS")
    @classmethod
    def _timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeouts must be positive, got {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _log_level_must_be_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL {v!r}")
        return v

    @field_validator("PUBLIC_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, parsed on first use."""
    return Settings()
