"""
Spark - Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
every call-site receives the same validated instance without re-parsing the
environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Spark backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    DATABASE_URL: str = "sqlite+aiosqlite:///./spark.db"
    AUTO_CREATE_TABLES: bool = True

    # ------------------------------------------------------------------ #
    # Redis – distributed locks for multi-worker deployments
    # ------------------------------------------------------------------ #
    REDIS_URL: str = ""
    LOCK_TIMEOUT_SECONDS: float = 10.0   # auto-release if a holder dies
    LOCK_WAIT_SECONDS: float = 5.0      # give up acquiring after this

    # ------------------------------------------------------------------ #
    # One-time passcodes
    # ------------------------------------------------------------------ #
    OTP_TTL_MINUTES: int = 10
    OTP_CODE_LENGTH: int = 6
    OTP_ECHO_CODE: bool = False  # demo only, ignored in production

    # ------------------------------------------------------------------ #
    # Discovery & chat
    # ------------------------------------------------------------------ #
    DISCOVERY_BATCH_SIZE: int = 50
    DISCOVERY_DEFAULT_LIMIT: int = 20
    MESSAGE_MAX_LENGTH: int = 2000

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

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

    @property
    def echo_otp_codes(self) -> bool:
        """Whether issued codes may be returned to the caller."""
        return self.OTP_ECHO_CODE and not self.is_production

    @field_validator("OTP_CODE_LENGTH")
    @classmethod
    def _code_length_in_range(cls, v: int) -> int:
        if not 4 <= v <= 10:
            raise ValueError(f"OTP_CODE_LENGTH must be between 4 and 10, got {v}")
        return v

    @field_validator("OTP_TTL_MINUTES", "DISCOVERY_BATCH_SIZE", "DISCOVERY_DEFAULT_LIMIT", "MESSAGE_MAX_LENGTH")
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime::

        from spark.config import get_settings
        settings = get_settings()
    """
    return Settings()
