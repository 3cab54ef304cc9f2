#!/usr/bin/env python3
"""
Service Container

Every long-lived component is constructed here, once, from Settings and
handed to the FastAPI app through ``app.state.services``. There are no
module-level singletons: tests build their own container (usually with an
in-memory Redis double) and the lifespan hook owns startup and shutdown.

Construction order (leaf to root):
    RedisClient -> FixedWindowRateLimiter -> CacheService
    BackgroundTaskRunner -> PerformanceMonitor
    HealthChecker

Author: Platform Team
Date: 2026-03-07
"""

from dataclasses import dataclass

from swapcache.core.background import BackgroundTaskRunner
from swapcache.core.config.settings import Settings
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.cache_service import CacheService
from swapcache.infrastructure.cache.redis_client import ClientFactory, RedisClient
from swapcache.infrastructure.monitoring.health_checker import HealthChecker
from swapcache.infrastructure.monitoring.performance_monitor import PerformanceMonitor
from swapcache.rate_limiting.rate_limiter import FixedWindowRateLimiter

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Explicitly wired application services."""

    settings: Settings
    redis: RedisClient
    rate_limiter: FixedWindowRateLimiter
    cache: CacheService
    tasks: BackgroundTaskRunner
    performance: PerformanceMonitor
    health: HealthChecker

    @classmethod
    def build(cls, settings: Settings, redis_client_factory: ClientFactory | None = None) -> "ServiceContainer":
        """
        Wire every service from ``settings``.

        Args:
            settings: Application settings
            redis_client_factory: Replaces the redis.asyncio client (tests)
        """
        redis_client = RedisClient(settings, client_factory=redis_client_factory)
        rate_limiter = FixedWindowRateLimiter(redis_client)
        tasks = BackgroundTaskRunner()
        perf = settings.performance

        return cls(
            settings=settings,
            redis=redis_client,
            rate_limiter=rate_limiter,
            cache=CacheService(
                redis_client,
                rate_limiter=rate_limiter,
                search_key_length=settings.cache.SEARCH_KEY_LENGTH,
            ),
            tasks=tasks,
            performance=PerformanceMonitor(
                redis_client,
                tasks,
                max_metrics=perf.PERF_MAX_METRICS,
                slow_threshold_ms=perf.PERF_SLOW_THRESHOLD_MS,
                metric_ttl=perf.PERF_METRIC_TTL,
            ),
            health=HealthChecker(redis_client),
        )

    async def startup(self) -> None:
        """
        Connect to Redis. Never raises: a Redis outage leaves the app in
        degraded mode.

        STAGE-0: Service startup
        """
        connected = await self.redis.connect()
        logger.info("Services started", stage="0.0_INITIALIZATION", redis_connected=connected)

    async def shutdown(self) -> None:
        """
        Drain background work, then close Redis.

        STAGE-6: Service shutdown
        """
        await self.tasks.shutdown()
        await self.redis.disconnect()
        logger.info("Services stopped", stage="6.0_CLEANUP")
