#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the caching and performance
layer. Every tunable (Redis connection, TTL defaults, rate limits, monitor
window, logging) is read from the environment or a .env file here and nowhere
else.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Section objects (settings.redis, settings.cache, ...) for grouped access

Author: Platform Team
Date: 2026-03-02
"""

from typing import Literal, TypeVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SectionT = TypeVar("_SectionT", bound=BaseSettings)


class RedisSettings(BaseSettings):
    """
    Redis connection configuration.

    STAGE-0.1: Redis connection configuration

    Reconnects use exponential backoff starting at REDIS_RECONNECT_BASE_DELAY,
    capped at REDIS_RECONNECT_MAX_DELAY per attempt, and give up after
    REDIS_RECONNECT_MAX_ATTEMPTS consecutive failures.
    """

    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=10.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=10.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Idle connection health check interval")
    REDIS_RECONNECT_MAX_ATTEMPTS: int = Field(default=10, ge=1, description="Consecutive connect failures before giving up")
    REDIS_RECONNECT_BASE_DELAY: float = Field(default=0.1, ge=0, description="First reconnect delay in seconds")
    REDIS_RECONNECT_MAX_DELAY: float = Field(default=3.0, ge=0, description="Upper bound on a single reconnect delay")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    HTTP response cache configuration.

    STAGE-2: Response cache configuration
    """

    RESPONSE_CACHE_ENABLED: bool = Field(default=True, description="Enable GET response caching")
    RESPONSE_CACHE_TTL: int = Field(default=300, ge=1, description="Response cache TTL in seconds")
    RESPONSE_CACHE_PATHS: list[str] = Field(
        default_factory=list,
        description="Path prefixes whose GET responses are cached (empty disables the middleware)",
    )
    SEARCH_KEY_LENGTH: int = Field(default=32, ge=8, le=43, description="Length of hashed search cache keys")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Global fixed-window rate limit applied to every API request.

    STAGE-3: Rate limiting thresholds
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable the global rate limiter")
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=900, ge=1, description="Window length (15 minutes)")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, ge=1, description="Requests allowed per window")
    RATE_LIMIT_EXEMPT_PATHS: list[str] = Field(
        default_factory=lambda: ["/api/v1/performance/health", "/docs", "/openapi.json"],
        description="Path prefixes that bypass the global limiter",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class PerformanceSettings(BaseSettings):
    """
    Request performance monitor configuration.

    STAGE-P: Performance monitor window
    """

    PERF_MAX_METRICS: int = Field(default=1000, ge=1, description="In-memory metric window size")
    PERF_SLOW_THRESHOLD_MS: float = Field(default=1000.0, ge=0, description="Slow request threshold (ms)")
    PERF_METRIC_TTL: int = Field(default=3600, ge=1, description="TTL of metrics mirrored to Redis")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="Skill Swap Cache Layer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")
    API_BASE_PATH: str = Field(default="/api/v1", description="Prefix for all API routers")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")
    ADMIN_API_TOKEN: str | None = Field(
        default=None,
        description="Token expected in X-Admin-Token for admin endpoints (unset allows all)",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(
    RedisSettings,
    CacheSettings,
    RateLimitSettings,
    PerformanceSettings,
    LoggingSettings,
    ApplicationSettings,
):
    """
    Main settings class aggregating every configuration section.

    Usage:
        from swapcache.core.config.settings import get_settings

        settings = get_settings()
        url = settings.redis.REDIS_URL
        window = settings.rate_limit.RATE_LIMIT_WINDOW_SECONDS

    Fields are flat (one env var each); the section properties return the
    grouped view used by individual components.
    """

    def _section(self, section_cls: type[_SectionT]) -> _SectionT:
        values = {name: getattr(self, name) for name in section_cls.model_fields}
        return section_cls.model_construct(**values)

    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return self._section(RedisSettings)

    @property
    def cache(self) -> CacheSettings:
        """Get response cache settings."""
        return self._section(CacheSettings)

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return self._section(RateLimitSettings)

    @property
    def performance(self) -> PerformanceSettings:
        """Get performance monitor settings."""
        return self._section(PerformanceSettings)

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return self._section(LoggingSettings)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return self._section(ApplicationSettings)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Components receive their settings explicitly; this accessor is for the
    entry points (app factory, CLI) that have to start somewhere.
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
