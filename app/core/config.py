"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings.
# Nested BaseSettings don't inherit env_file.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_db_settings() -> "DatabaseSettings":
    return DatabaseSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    url: str = Field(
        "sqlite:///./injections.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        False,
        description="Echo SQL statements (debugging only)",
    )
    pool_pre_ping: bool = Field(
        True,
        description="Check connections before handing them out",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated log files to keep")
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
    timezone: str = Field(
        "UTC",
        description="IANA timezone that defines calendar-day boundaries",
    )
    cors_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins",
    )
    api_key_required: bool = Field(
        False,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    doses_per_day: int = Field(
        2,
        description="Expected doses per calendar day (morning + evening)",
        ge=1,
    )
    compliance_days: int = Field(
        7,
        description="Window in days for the short-term compliance figure",
        ge=1,
    )
    stats_days: int = Field(
        30,
        description="Default statistics window in days",
        ge=1,
    )
    stats_cache_ttl_seconds: int = Field(
        30,
        description="How long computed statistics are cached",
        ge=0,
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting per client",
    )
    rate_limit_prefix: str = Field(
        "insulin-tracker",
        description="Namespace prepended to every rate limit key",
    )
    rate_limit_requests: int = Field(
        30,
        description="Maximum read requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_injection_requests: int = Field(
        10,
        description="Maximum injection writes allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    db: DatabaseSettings = Field(default_factory=_build_db_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
