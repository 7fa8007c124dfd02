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


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    principal_header: str = Field(
        "X-User-Id",
        description="Header carrying the authenticated user id set by the upstream auth layer",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Resolve the client address from X-Forwarded-For / X-Real-IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-policy rate limit configuration.

    Defaults mirror the production policies: chat 60/min, booking 10/min,
    auth 5/min.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting on protected routes",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* (and Retry-After when throttled) headers",
    )
    cleanup_threshold: int = Field(
        1000,
        description="Tracked-key count above which expired records are swept",
        ge=0,
    )

    chat_limit: int = Field(60, ge=1)
    chat_window_ms: int = Field(60_000, ge=1)
    booking_limit: int = Field(10, ge=1)
    booking_window_ms: int = Field(60_000, ge=1)
    auth_limit: int = Field(5, ge=1)
    auth_window_ms: int = Field(60_000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
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
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()


def settings_for(request) -> Settings:
    """Settings of the application serving ``request``.

    ``create_app`` stores its settings on ``app.state.settings``; requests
    served by an app without them (or with no app in scope) use the global
    instance.
    """
    app = request.scope.get("app")
    app_settings = getattr(getattr(app, "state", None), "settings", None)
    return app_settings or settings
