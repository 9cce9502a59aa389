"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are read once at import time. Components copy the values they need
at construction and never observe later changes.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class RateLimitSettings(BaseSettings):
    """Login throttling configuration."""

    enabled: bool = Field(
        True,
        description="Enable login attempt throttling",
    )
    max_attempts: int = Field(
        5,
        description="Failed attempts allowed per identifier before blocking",
        ge=1,
    )
    window_seconds: int = Field(
        15 * 60,
        description="Window during which failed attempts accumulate",
        ge=1,
    )
    progressive_delays: list[int] = Field(
        default_factory=lambda: [60, 300, 900, 1800, 3600],
        description="Escalating block durations in seconds, one per repeated violation",
    )
    cleanup_interval_seconds: int = Field(
        60 * 60,
        description="Interval between sweeps of expired entries",
        ge=1,
    )
    bypass_request_types: list[str] = Field(
        default_factory=lambda: ["password_reset_request"],
        description="Request types exempt from throttling",
    )
    ip_header_names: list[str] = Field(
        default_factory=lambda: ["x-forwarded-for", "x-real-ip", "cf-connecting-ip"],
        description="Proxy headers consulted (in order) for the client IP",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("progressive_delays")
    @classmethod
    def _check_delays(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("progressive_delays must contain at least one delay")
        if any(delay <= 0 for delay in value):
            raise ValueError("progressive_delays must be positive")
        return value


class TokenRefreshSettings(BaseSettings):
    """Credential refresh coordination configuration."""

    threshold_seconds: float = Field(
        5 * 60,
        description="Refresh this long before the session expires",
        ge=0,
    )
    safety_buffer_seconds: float = Field(
        30,
        description="Extra margin subtracted from the refresh time",
        ge=0,
    )
    max_retry_attempts: int = Field(
        3,
        description="Provider calls per refresh sequence",
        ge=1,
    )
    base_retry_delay_seconds: float = Field(
        1.0,
        description="Backoff delay after the first failed attempt",
        ge=0,
    )
    max_retry_delay_seconds: float = Field(
        10.0,
        description="Upper bound for the exponential part of the backoff",
        ge=0,
    )
    backoff_factor: float = Field(
        2.0,
        description="Multiplier applied to the delay after each failure",
        ge=1,
    )
    max_jitter_seconds: float = Field(
        1.0,
        description="Random jitter added to each backoff, drawn from [0, value)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_REFRESH_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int | None = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (None disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether administrative endpoints require an API key",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for administrative endpoints",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    token_refresh: TokenRefreshSettings = Field(default_factory=TokenRefreshSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
