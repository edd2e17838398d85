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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, but
    static type checkers treat fields as required constructor arguments.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_db_settings() -> "DatabaseSettings":
    return DatabaseSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    admin_token: str | None = Field(
        None,
        description="Bearer token for /admin routes. Unset or blank disables them entirely",
    )
    cors_origin: str = Field(
        "*",
        description="Value of Access-Control-Allow-Origin",
    )
    listen_addr: str = Field(
        "127.0.0.1:3000",
        description="host:port the HTTP server binds to",
    )
    trust_forwarded_for: bool = Field(
        True,
        description="Resolve the client address from X-Forwarded-For when present",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on POST /register",
    )
    rate_limit_burst: int = Field(
        3,
        description="Maximum number of registrations a client may burst",
        ge=1,
    )
    rate_limit_replenish_seconds: float = Field(
        60.0,
        description="Seconds needed to regain one registration token",
        gt=0,
    )
    rate_limit_max_idle_buckets: int = Field(
        10000,
        description="Bucket count above which fully refilled buckets are evicted",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """SQLite storage configuration."""

    path: str = Field(
        "data.db",
        description="SQLite database file, or ':memory:' for a throwaway database",
    )
    echo: bool = Field(
        False,
        description="Log every SQL statement (SQLAlchemy echo)",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
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
