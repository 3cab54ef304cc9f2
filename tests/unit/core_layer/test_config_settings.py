"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from swapcache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Test Settings defaults per section."""

    def test_redis_defaults(self):
        """Test that Redis settings default to a local instance with bounded backoff."""
        settings = Settings(_env_file=None)

        assert settings.redis.REDIS_URL == "redis://localhost:6379/0"
        assert settings.redis.REDIS_SOCKET_TIMEOUT == 10.0
        assert settings.redis.REDIS_RECONNECT_MAX_ATTEMPTS == 10
        assert settings.redis.REDIS_RECONNECT_MAX_DELAY == 3.0

    def test_rate_limit_defaults(self):
        """Test that the global limit defaults to 100 requests per 15 minutes."""
        settings = Settings(_env_file=None)

        assert settings.rate_limit.RATE_LIMIT_WINDOW_SECONDS == 900
        assert settings.rate_limit.RATE_LIMIT_MAX_REQUESTS == 100
        assert "/api/v1/performance/health" in settings.rate_limit.RATE_LIMIT_EXEMPT_PATHS

    def test_performance_defaults(self):
        """Test that the metric window keeps 1000 entries with a 1s slow threshold."""
        settings = Settings(_env_file=None)

        assert settings.performance.PERF_MAX_METRICS == 1000
        assert settings.performance.PERF_SLOW_THRESHOLD_MS == 1000.0
        assert settings.performance.PERF_METRIC_TTL == 3600

    def test_cache_defaults(self):
        """Test that response caching is on but covers no paths by default."""
        settings = Settings(_env_file=None)

        assert settings.cache.RESPONSE_CACHE_ENABLED is True
        assert settings.cache.RESPONSE_CACHE_TTL == 300
        assert settings.cache.RESPONSE_CACHE_PATHS == []
        assert settings.cache.SEARCH_KEY_LENGTH == 32

    def test_admin_token_unset_by_default(self):
        """Test that admin endpoints are open unless a token is configured."""
        settings = Settings(_env_file=None)

        assert settings.app.ADMIN_API_TOKEN is None
        assert settings.app.API_BASE_PATH == "/api/v1"


@pytest.mark.unit
class TestSettingsValidation:
    """Test Settings validation and environment loading."""

    def test_log_level_is_normalised(self):
        """Test that LOG_LEVEL is upper-cased."""
        settings = Settings(_env_file=None, LOG_LEVEL="debug")
        assert settings.logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        """Test that an unknown LOG_LEVEL fails fast."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="verbose")

    def test_reconnect_attempts_must_be_positive(self):
        """Test that REDIS_RECONNECT_MAX_ATTEMPTS below 1 is rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, REDIS_RECONNECT_MAX_ATTEMPTS=0)

    def test_environment_variables_override_defaults(self, monkeypatch):
        """Test that environment variables are read case-sensitively."""
        monkeypatch.setenv("REDIS_URL", "redis://cache.internal:6390/2")
        monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "250")
        monkeypatch.setenv("RESPONSE_CACHE_PATHS", '["/api/v1/skills"]')

        settings = Settings(_env_file=None)

        assert settings.redis.REDIS_URL == "redis://cache.internal:6390/2"
        assert settings.rate_limit.RATE_LIMIT_MAX_REQUESTS == 250
        assert settings.cache.RESPONSE_CACHE_PATHS == ["/api/v1/skills"]

    def test_is_development(self):
        """Test the development flag follows ENVIRONMENT."""
        assert Settings(_env_file=None, ENVIRONMENT="development").is_development
        assert not Settings(_env_file=None, ENVIRONMENT="production").is_development


@pytest.mark.unit
class TestSettingsSingleton:
    """Test get_settings / reload_settings."""

    def test_get_settings_returns_same_instance(self):
        """Test that get_settings caches the instance."""
        with patch("swapcache.core.config.settings._settings", None):
            first = get_settings()
            second = get_settings()
            assert first is second

    def test_reload_settings_replaces_instance(self):
        """Test that reload_settings builds a fresh instance."""
        with patch("swapcache.core.config.settings._settings", None):
            first = get_settings()
            second = reload_settings()
            assert first is not second
            assert get_settings() is second
