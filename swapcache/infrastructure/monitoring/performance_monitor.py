#!/usr/bin/env python3
"""
Request Performance Monitor

STAGE-P: Performance monitoring

Keeps a bounded, in-process window of per-request metrics (latency, status,
memory delta) and answers summary and percentile queries over it. Every
recorded metric is also mirrored to Redis for an hour, together with global
request/status/slow counters, from a background task so recording never
waits on the network.

Statistics describe only this process's window: with several workers each
one reports its own traffic.

Author: Platform Team
Date: 2026-03-06
"""

import math
import uuid
from collections import deque
from dataclasses import dataclass, field

from swapcache.core.background import BackgroundTaskRunner
from swapcache.core.config.constants import (
    DEFAULT_MAX_METRICS,
    DEFAULT_METRIC_TTL,
    DEFAULT_SLOW_THRESHOLD_MS,
    PERCENTILES,
    REDIS_KEY_COUNTER_REQUESTS,
    REDIS_KEY_COUNTER_SLOW,
    REDIS_KEY_COUNTER_STATUS,
    REDIS_KEY_METRICS,
    Stage,
)
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class PerformanceMetric:
    """One completed request."""

    path: str
    method: str
    status_code: int
    response_time_ms: float
    timestamp_ms: int
    memory_delta_bytes: int = 0
    user_id: str | None = None


@dataclass
class PerformanceStats:
    """Summary of the current metric window."""

    total_requests: int = 0
    average_response_time: int = 0
    slow_requests: int = 0
    fastest_request: float = 0
    slowest_request: float = 0
    requests_by_method: dict[str, int] = field(default_factory=dict)
    requests_by_status: dict[int, int] = field(default_factory=dict)


class PerformanceMonitor:
    """
    Sliding window of the most recent request metrics.

    Usage:
        monitor = PerformanceMonitor(redis_client, tasks)
        monitor.record(metric)
        stats = monitor.get_stats()
        p95 = monitor.get_percentile(95)
    """

    def __init__(
        self,
        store: RedisClient,
        tasks: BackgroundTaskRunner,
        max_metrics: int = DEFAULT_MAX_METRICS,
        slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
        metric_ttl: int = DEFAULT_METRIC_TTL,
    ):
        self._store = store
        self._tasks = tasks
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._slow_threshold_ms = slow_threshold_ms
        self._metric_ttl = metric_ttl

    @property
    def slow_threshold_ms(self) -> float:
        return self._slow_threshold_ms

    def __len__(self) -> int:
        return len(self._metrics)

    def is_slow(self, metric: PerformanceMetric) -> bool:
        return metric.response_time_ms > self._slow_threshold_ms

    def record(self, metric: PerformanceMetric) -> None:
        """
        Append a metric, evicting the oldest once the window is full.

        Slow requests are logged at warning level. Mirroring to Redis is
        scheduled in the background and skipped while Redis is not ready.
        """
        self._metrics.append(metric)

        if self.is_slow(metric):
            logger.warning(
                "Slow request detected",
                stage=Stage.PERFORMANCE,
                path=metric.path,
                method=metric.method,
                response_time_ms=metric.response_time_ms,
                user_id=metric.user_id,
            )

        if self._store.is_ready():
            self._tasks.submit(self._mirror(metric), name="performance-metric-mirror")

    async def _mirror(self, metric: PerformanceMetric) -> None:
        key = f"{REDIS_KEY_METRICS}:{metric.timestamp_ms}:{uuid.uuid4().hex[:12]}"
        await self._store.set_json(key, metric, self._metric_ttl)
        await self._store.incr(f"{REDIS_KEY_COUNTER_REQUESTS}:{metric.method}")
        await self._store.incr(f"{REDIS_KEY_COUNTER_STATUS}:{metric.status_code}")
        if self.is_slow(metric):
            await self._store.incr(REDIS_KEY_COUNTER_SLOW)

    def get_stats(self) -> PerformanceStats:
        """Aggregate the current window (all zeros when empty)."""
        if not self._metrics:
            return PerformanceStats()

        response_times = sorted(m.response_time_ms for m in self._metrics)
        by_method: dict[str, int] = {}
        by_status: dict[int, int] = {}
        for metric in self._metrics:
            by_method[metric.method] = by_method.get(metric.method, 0) + 1
            by_status[metric.status_code] = by_status.get(metric.status_code, 0) + 1

        return PerformanceStats(
            total_requests=len(self._metrics),
            average_response_time=round_half_up(sum(response_times) / len(response_times)),
            slow_requests=sum(1 for t in response_times if t > self._slow_threshold_ms),
            fastest_request=response_times[0],
            slowest_request=response_times[-1],
            requests_by_method=by_method,
            requests_by_status=by_status,
        )

    def get_percentile(self, percentile: float) -> float:
        """
        Nearest-rank percentile of response times.

        index = ceil(p / 100 * n) - 1 over the sorted window; p = 0 yields
        the fastest request, an empty window yields 0.

        Raises:
            ValueError: percentile outside [0, 100]
        """
        if not 0 <= percentile <= 100:
            raise ValueError(f"percentile must be within [0, 100], got {percentile}")
        if not self._metrics:
            return 0

        ordered = sorted(m.response_time_ms for m in self._metrics)
        index = max(math.ceil(percentile / 100 * len(ordered)) - 1, 0)
        return ordered[index]

    def get_percentiles(self) -> dict[str, float]:
        """p50, p75, p90, p95 and p99 keyed as ``"p50"`` etc."""
        return {f"p{p}": self.get_percentile(p) for p in PERCENTILES}

    def get_path_metrics(self, path: str) -> list[PerformanceMetric]:
        return [m for m in self._metrics if m.path == path]

    def clear(self) -> None:
        """Empty the in-memory window. Mirrored Redis data is left to expire."""
        self._metrics.clear()
        logger.info("Performance metrics cleared", stage=Stage.PERFORMANCE)
