"""
Unit Tests for PerformanceMonitor

Tests the bounded metric window, statistics, percentiles and the Redis mirror.
"""

import pytest

from swapcache.infrastructure.monitoring.performance_monitor import (
    PerformanceMetric,
    PerformanceMonitor,
    PerformanceStats,
    round_half_up,
)


def metric(response_time_ms, path="/api/v1/skills", method="GET", status_code=200, ts=1_700_000_000_000):
    return PerformanceMetric(
        path=path,
        method=method,
        status_code=status_code,
        response_time_ms=response_time_ms,
        timestamp_ms=ts,
    )


@pytest.fixture
def monitor(redis_client, task_runner):
    return PerformanceMonitor(redis_client, task_runner, max_metrics=1000, slow_threshold_ms=1000)


@pytest.mark.unit
class TestMetricWindow:
    """Test recording and eviction."""

    def test_window_is_bounded(self, offline_redis_client, task_runner):
        """Test that 1001 records keep only the newest 1000."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner, max_metrics=1000)

        for i in range(1001):
            monitor.record(metric(float(i), path=f"/p/{i}"))

        assert len(monitor) == 1000
        assert monitor.get_path_metrics("/p/0") == []
        assert len(monitor.get_path_metrics("/p/1000")) == 1

    def test_clear_empties_window(self, offline_redis_client, task_runner):
        """Test that clear drops every metric."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner)
        monitor.record(metric(10))

        monitor.clear()

        assert len(monitor) == 0
        assert monitor.get_stats() == PerformanceStats()

    def test_slow_threshold_is_strict(self, offline_redis_client, task_runner):
        """Test that only requests above the threshold are slow."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner, slow_threshold_ms=1000)

        assert not monitor.is_slow(metric(1000))
        assert monitor.is_slow(metric(1000.5))


@pytest.mark.unit
class TestStatistics:
    """Test aggregate statistics."""

    def test_empty_window(self, offline_redis_client, task_runner):
        """Test that an empty window reports zeros."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner)
        stats = monitor.get_stats()

        assert stats.total_requests == 0
        assert stats.average_response_time == 0
        assert monitor.get_percentile(95) == 0

    def test_stats_over_window(self, offline_redis_client, task_runner):
        """Test totals, average, extremes and breakdowns."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner, slow_threshold_ms=1000)
        monitor.record(metric(100, method="GET", status_code=200))
        monitor.record(metric(250, method="POST", status_code=201))
        monitor.record(metric(1500, method="GET", status_code=500))

        stats = monitor.get_stats()

        assert stats.total_requests == 3
        assert stats.average_response_time == 617
        assert stats.slow_requests == 1
        assert stats.fastest_request == 100
        assert stats.slowest_request == 1500
        assert stats.requests_by_method == {"GET": 2, "POST": 1}
        assert stats.requests_by_status == {200: 1, 201: 1, 500: 1}

    def test_average_rounds_halves_up(self, offline_redis_client, task_runner):
        """Test that an average of x.5 ms rounds up rather than to even."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner)
        monitor.record(metric(2))
        monitor.record(metric(3))

        assert monitor.get_stats().average_response_time == 3

    @pytest.mark.parametrize("value, expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (616.67, 617)])
    def test_round_half_up(self, value, expected):
        """Test the rounding helper on both sides of .5."""
        assert round_half_up(value) == expected


@pytest.mark.unit
class TestPercentiles:
    """Test nearest-rank percentiles."""

    @pytest.fixture
    def hundred(self, offline_redis_client, task_runner):
        monitor = PerformanceMonitor(offline_redis_client, task_runner)
        for value in range(100, 0, -1):
            monitor.record(metric(float(value)))
        return monitor

    def test_nearest_rank(self, hundred):
        """Test that p-th percentile of 1..100 is p."""
        assert hundred.get_percentile(50) == 50
        assert hundred.get_percentile(95) == 95
        assert hundred.get_percentile(100) == 100

    def test_zero_is_minimum(self, hundred):
        """Test that p0 is the fastest request."""
        assert hundred.get_percentile(0) == 1

    def test_percentiles_are_monotonic(self, hundred):
        """Test that higher percentiles never report lower values."""
        values = [hundred.get_percentile(p) for p in range(0, 101, 5)]
        assert values == sorted(values)

    def test_percentile_table(self, hundred):
        """Test the p50..p99 summary."""
        assert hundred.get_percentiles() == {"p50": 50, "p75": 75, "p90": 90, "p95": 95, "p99": 99}

    def test_out_of_range_rejected(self, hundred):
        """Test that percentiles outside [0, 100] raise ValueError."""
        with pytest.raises(ValueError):
            hundred.get_percentile(-1)
        with pytest.raises(ValueError):
            hundred.get_percentile(101)


@pytest.mark.unit
class TestRedisMirror:
    """Test that metrics and counters are mirrored to Redis."""

    @pytest.mark.asyncio
    async def test_metric_and_counters_written(self, monitor, task_runner, fake_redis):
        """Test the metric key, its TTL and the per-method/status/slow counters."""
        monitor.record(metric(1200, method="POST", status_code=201))
        await task_runner.drain()

        metric_keys = [key for key in fake_redis.data if key.startswith("metrics:1700000000000:")]
        assert len(metric_keys) == 1
        assert fake_redis.expires_at[metric_keys[0]] == 3600
        assert fake_redis.data["counter:requests:POST"] == "1"
        assert fake_redis.data["counter:status:201"] == "1"
        assert fake_redis.data["counter:slow_requests"] == "1"

    @pytest.mark.asyncio
    async def test_mirror_skipped_while_redis_down(self, offline_redis_client, task_runner):
        """Test that recording never schedules Redis work in degraded mode."""
        monitor = PerformanceMonitor(offline_redis_client, task_runner)

        monitor.record(metric(10))

        assert task_runner.pending == 0
        assert len(monitor) == 1
