"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.

Nothing here talks to a real Redis: every RedisClient is built with an
InMemoryRedis double through ``client_factory``.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from swapcache.core.background import BackgroundTaskRunner  # noqa: E402
from swapcache.core.config.settings import Settings  # noqa: E402
from swapcache.infrastructure.cache.cache_service import CacheService  # noqa: E402
from swapcache.infrastructure.cache.redis_client import RedisClient  # noqa: E402
from swapcache.rate_limiting.rate_limiter import FixedWindowRateLimiter  # noqa: E402
from test_fixtures.fake_redis import InMemoryRedis  # noqa: E402


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """
    Test settings: no .env file, instant reconnect backoff, two attempts.
    """
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        REDIS_URL="redis://cache.test:6380/0",
        REDIS_RECONNECT_MAX_ATTEMPTS=2,
        REDIS_RECONNECT_BASE_DELAY=0,
        REDIS_RECONNECT_MAX_DELAY=0,
        RATE_LIMIT_ENABLED=False,
        RESPONSE_CACHE_ENABLED=False,
        LOG_FORMAT="console",
    )


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def fake_redis():
    """In-memory redis.asyncio double with a manual clock."""
    return InMemoryRedis()


@pytest.fixture
async def redis_client(settings, fake_redis):
    """Connected RedisClient backed by ``fake_redis``."""
    client = RedisClient(settings, client_factory=lambda: fake_redis)
    await client.connect()
    yield client
    await client.disconnect()


@pytest.fixture
async def offline_redis_client(settings, fake_redis):
    """RedisClient whose connect() exhausted its attempts (degraded mode)."""
    fake_redis.down = True
    client = RedisClient(settings, client_factory=lambda: fake_redis)
    await client.connect()
    yield client
    await client.disconnect()


@pytest.fixture
def clock(fake_redis):
    """Wall clock in seconds that follows the fake Redis clock."""
    start = 1_700_000_000.0
    return lambda: start + fake_redis.now


@pytest.fixture
def rate_limiter(redis_client, clock):
    return FixedWindowRateLimiter(redis_client, clock=clock)


@pytest.fixture
def cache_service(redis_client, rate_limiter):
    return CacheService(redis_client, rate_limiter=rate_limiter)


@pytest.fixture
async def task_runner():
    runner = BackgroundTaskRunner(shutdown_timeout=1.0)
    yield runner
    await runner.shutdown()
