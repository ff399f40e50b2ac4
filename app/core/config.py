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
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Derive the client address from X-Forwarded-For / X-Real-IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class NotesSettings(BaseSettings):
    """Note storage configuration."""

    namespace: str = Field(
        "note",
        description="Key prefix for stored notes (<namespace>:<identifier>)",
        min_length=1,
    )
    retention_seconds: int = Field(
        259200,
        description="Retention window in seconds (72 hours)",
        ge=1,
    )
    max_narrative_chars: int = Field(
        20000,
        description="Maximum narrative length in characters after trimming",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTES_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting and abuse ban configuration for note retrieval."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on note retrieval",
    )
    requests: int = Field(
        10,
        description="Maximum number of retrievals allowed per window (per client)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    failure_threshold: int = Field(
        100,
        description="Failed lookups within the failure window that trigger a ban",
        ge=1,
    )
    ban_seconds: int = Field(
        86400,
        description="Duration of an automatic ban in seconds",
        ge=1,
    )
    failure_window_seconds: int = Field(
        86400,
        description="TTL of the cumulative failure counter in seconds",
        ge=1,
    )
    namespace: str = Field(
        "rate_limit",
        description="Key prefix for limiter state (<namespace>:<kind>:<client>)",
        min_length=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on retrieval",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Key-value store backend configuration."""

    backend: str = Field(
        "memory",
        description="Store backend: 'memory' (single process) or 'redis'",
    )
    redis_url: str | None = Field(
        None,
        description="Redis connection URL (required for the redis backend)",
    )
    timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout for remote stores",
        gt=0,
    )
    max_entries: int | None = Field(
        None,
        description="Capacity bound for the in-memory backend (None for unlimited)",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log output: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_app_settings() -> AppSettings:
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables, so the
    nested settings are constructed lazily through default factories.
    """

    return AppSettings()


def _build_notes_settings() -> NotesSettings:
    return NotesSettings()


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


def _build_store_settings() -> StoreSettings:
    return StoreSettings()


def _build_log_settings() -> LogSettings:
    return LogSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (in-memory store)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    notes: NotesSettings = Field(default_factory=_build_notes_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
