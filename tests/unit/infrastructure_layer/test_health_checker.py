"""
Unit Tests for HealthChecker

Tests status resolution, health/system reports and formatting helpers.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from swapcache.infrastructure.monitoring.health_checker import (
    HealthChecker,
    HealthStatus,
    format_bytes,
    format_uptime,
)


@pytest.mark.unit
class TestFormatting:
    """Test human readable helpers."""

    @pytest.mark.parametrize(
        "num_bytes, expected",
        [
            (0, "0 Bytes"),
            (512, "512 Bytes"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (5 * 1024**2, "5 MB"),
            (1234567890, "1.15 GB"),
        ],
    )
    def test_format_bytes(self, num_bytes, expected):
        """Test byte formatting across units."""
        assert format_bytes(num_bytes) == expected

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0s"),
            (59.9, "59s"),
            (60, "1m"),
            (3725, "1h 2m 5s"),
            (90061, "1d 1h 1m 1s"),
            (86400, "1d"),
        ],
    )
    def test_format_uptime(self, seconds, expected):
        """Test that zero-valued units are omitted."""
        assert format_uptime(seconds) == expected


@pytest.mark.unit
class TestStatusResolution:
    """Test memory / Redis status rules."""

    @pytest.mark.parametrize(
        "memory_percent, redis_ready, expected",
        [
            (40.0, True, HealthStatus.HEALTHY),
            (75.0, True, HealthStatus.HEALTHY),
            (75.1, True, HealthStatus.DEGRADED),
            (40.0, False, HealthStatus.DEGRADED),
            (90.0, True, HealthStatus.DEGRADED),
            (90.1, True, HealthStatus.CRITICAL),
            (95.0, False, HealthStatus.CRITICAL),
        ],
    )
    def test_resolve_status(self, memory_percent, redis_ready, expected):
        """Test each threshold boundary."""
        assert HealthChecker.resolve_status(memory_percent, redis_ready) is expected


def fake_virtual_memory(percent):
    return SimpleNamespace(total=16 * 1024**3, used=int(16 * 1024**3 * percent / 100), percent=percent)


@pytest.mark.unit
class TestReports:
    """Test health and system reports."""

    @pytest.mark.asyncio
    async def test_healthy_report(self, redis_client):
        """Test the report shape with Redis up and low memory pressure."""
        checker = HealthChecker(redis_client, started_at=0)

        with patch("psutil.virtual_memory", return_value=fake_virtual_memory(40.0)):
            report = await checker.check_health()

        assert report["status"] is HealthStatus.HEALTHY
        assert report["redis"] == {"connected": True}
        assert report["memory"]["system_usage_percentage"] == "40.00%"
        assert set(report["uptime"]) == {"seconds", "formatted"}
        assert set(report["cpu"]) == {"user", "system"}
        assert report["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_redis_down_degrades(self, offline_redis_client):
        """Test that losing Redis degrades the status."""
        checker = HealthChecker(offline_redis_client)

        with patch("psutil.virtual_memory", return_value=fake_virtual_memory(40.0)):
            report = await checker.check_health()

        assert report["status"] is HealthStatus.DEGRADED
        assert report["redis"] == {"connected": False}

    @pytest.mark.asyncio
    async def test_system_report(self, redis_client):
        """Test the runtime section of the detailed metrics."""
        report = await HealthChecker(redis_client).system_report()

        assert set(report) == {"memory", "uptime", "python_version", "platform", "arch", "redis"}
        assert report["redis"]["status"] == "healthy"
