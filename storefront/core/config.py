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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    Static type checkers treat required fields as constructor arguments,
    which is not how BaseSettings is meant to be used.
    """

    return LLMSettings()  # type: ignore[call-arg]


class LLMSettings(BaseSettings):
    """Model provider configuration used by the review generator."""

    provider: str = Field(
        ...,
        description="LLM provider name (e.g., openai)",
    )
    model: str = Field(
        ...,
        description="Model name (e.g., gpt-4o-mini)",
    )
    api_key: str | None = Field(
        None,
        description="API key for cloud providers",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (OpenAI-compatible gateways, local servers)",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    admin_token: str | None = Field(
        None,
        description="Shared token required by the admin endpoints (X-Admin-Token)",
    )
    stream_buffer_chunks: int = Field(
        1,
        description="Chunks buffered between the generator and a streaming client",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window budgets for the AI-backed endpoints."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    window_seconds: float = Field(
        60.0,
        description="Sliding window length in seconds",
        gt=0,
    )
    summary_requests: int = Field(
        10,
        description="Summary requests allowed per window (per client and product)",
    )
    insights_requests: int = Field(
        10,
        description="Insight requests allowed per window (per client and product)",
    )
    compare_requests: int = Field(
        8,
        description="Comparison requests allowed per window (per client and pair)",
    )
    recommendations_requests: int = Field(
        6,
        description="Recommendation requests allowed per window (per client)",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers alongside Retry-After when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Result cache for non-streamed AI artifacts."""

    ttl_seconds: float = Field(
        3600.0,
        description="Time-to-live for cached summaries and insights",
        gt=0,
    )
    max_entries: int | None = Field(
        1024,
        description="Maximum cached entries before LRU eviction (None for unlimited)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate log file after this size (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
