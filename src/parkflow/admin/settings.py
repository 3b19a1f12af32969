"""Centralized configuration using pydantic-settings.

All configuration is loaded from environment variables and .env files.
Variables are prefixed with ``PARKFLOW_``; nested settings use a double
underscore, e.g. ``PARKFLOW_API__BASE_URL=https://host/apitest``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class GuardScope(str, Enum):
    """How widely the unassign in-flight guard serializes requests."""

    GLOBAL = "global"
    TENANT = "tenant"


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="PARKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ============================================================
    # Core Application Settings
    # ============================================================

    app_name: str = Field("parkflow-admin", description="Application name")
    app_version: str = Field("1.0.0", description="Application version")
    environment: Environment = Field(Environment.DEVELOPMENT, description="Deployment environment")
    debug: bool = Field(False, description="Debug mode")

    # ============================================================
    # Backend API
    # ============================================================

    class APISettings(BaseModel):
        """Backend REST API configuration."""

        base_url: str = Field(
            "http://localhost:3000/apitest", description="Backend API base URL"
        )
        token: str | None = Field(None, description="Bearer token for the operator session")
        timeout_seconds: float = Field(30.0, description="Request timeout in seconds")
        verify_ssl: bool = Field(True, description="Verify TLS certificates")

        @field_validator("base_url")
        def strip_trailing_slash(cls, v: str) -> str:
            """Normalize the base URL."""
            return v.strip().rstrip("/")

    api: APISettings = APISettings()  # type: ignore[call-arg]

    # ============================================================
    # Subscription Console
    # ============================================================

    class ConsoleSettings(BaseModel):
        """Subscription console behaviour."""

        reconcile_delay_seconds: float | None = Field(
            1.0,
            description="Seconds before the refetch after a mutation (None disables it)",
        )
        unassign_guard_scope: GuardScope = Field(
            GuardScope.GLOBAL, description="Serialize unassignments globally or per tenant"
        )
        default_page_size: int = Field(10, description="Subscription table page size")
        history_page_size: int = Field(5, description="History viewer page size")
        history_cache_ttl_seconds: int = Field(
            60, description="Per-tenant history cache TTL (0 disables caching)"
        )
        history_cache_size: int = Field(256, description="Max tenants kept in the history cache")
        default_plan_duration_days: int = Field(
            30, description="Duration used when a plan payload carries none"
        )

    console: ConsoleSettings = ConsoleSettings()  # type: ignore[call-arg]

    # ============================================================
    # Observability
    # ============================================================

    class ObservabilitySettings(BaseModel):
        """Logging configuration."""

        log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
        log_format: str = Field("json", description="Log format (json or console)")
        enable_correlation_ids: bool = Field(False, description="Add thread name to log lines")

    observability: ObservabilitySettings = ObservabilitySettings()  # type: ignore[call-arg]

    # ============================================================
    # Validation & Helpers
    # ============================================================

    @field_validator("environment", mode="before")
    def validate_environment(cls, v: Any) -> Any:
        """Validate environment."""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TEST


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore
    return _settings


def reset_settings() -> None:
    """Reset settings (mainly for testing)."""
    global _settings
    _settings = None


# Convenience export
settings = get_settings()
