"""
Unit Tests for Performance Routes

Tests the health, statistics and cache administration endpoints, including
the admin token guard and the camelCase response envelope.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from test_fixtures.app_client import build_app, running_app

BASE = "/api/v1/performance"


def virtual_memory(percent):
    total = 8 * 1024**3
    return SimpleNamespace(total=total, used=int(total * percent / 100), percent=percent)


@pytest.mark.unit
class TestHealthRoute:
    """Test GET /performance/health."""

    def test_healthy(self, settings, fake_redis):
        """Test 200 with the full health payload when everything is fine."""
        app = build_app(settings, fake_redis)

        with TestClient(app) as client, patch("psutil.virtual_memory", return_value=virtual_memory(40.0)):
            response = client.get(f"{BASE}/health")

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert body["data"]["redis"] == {"connected": True}
        assert body["data"]["memory"]["systemUsagePercentage"] == "40.00%"
        assert {"seconds", "formatted"} <= set(body["data"]["uptime"])
        assert {"timestamp", "pythonVersion", "platform", "cpu"} <= set(body["data"])
        assert "message" not in body

    def test_degraded_without_redis(self, settings, fake_redis):
        """Test 503 with success=true while Redis is unavailable."""
        fake_redis.down = True
        app = build_app(settings, fake_redis)

        with TestClient(app) as client, patch("psutil.virtual_memory", return_value=virtual_memory(40.0)):
            response = client.get(f"{BASE}/health")

        assert response.status_code == 503
        assert response.json()["success"] is True
        assert response.json()["data"]["status"] == "degraded"

    def test_critical_memory(self, settings, fake_redis):
        """Test 503 with success=false above 90% memory usage."""
        app = build_app(settings, fake_redis)

        with TestClient(app) as client, patch("psutil.virtual_memory", return_value=virtual_memory(95.0)):
            response = client.get(f"{BASE}/health")

        assert response.status_code == 503
        assert response.json()["success"] is False
        assert response.json()["data"]["status"] == "critical"

    def test_never_cached(self, settings, fake_redis):
        """Test that performance responses forbid client caching."""
        app = build_app(settings, fake_redis)

        with TestClient(app) as client:
            response = client.get(f"{BASE}/health")

        assert response.headers["Cache-Control"] == "no-store, no-cache, must-revalidate, private"


@pytest.mark.unit
class TestStatisticsRoutes:
    """Test the statistics endpoints."""

    @pytest.mark.asyncio
    async def test_stats(self, settings, fake_redis):
        """Test the performance summary after a few requests."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            await client.get("/")
            await client.get("/")
            response = await client.get(f"{BASE}/stats")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["totalRequests"] == 2
        assert data["requestsByMethod"] == {"GET": 2}
        assert data["requestsByStatus"] == {"200": 2}
        assert set(data["percentiles"]) == {"p50", "p75", "p90", "p95", "p99"}
        assert data["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_cache_stats(self, settings, fake_redis):
        """Test Redis statistics with a formatted hit rate."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            services = app.state.services
            await services.cache.cache_user("u1", {"userId": "u1"})
            await services.cache.get_user("u1")
            await services.cache.get_user("u2")
            response = await client.get(f"{BASE}/cache")

        data = response.json()["data"]
        assert data["connected"] is True
        assert data["hits"] == 1
        assert data["misses"] == 1
        assert data["hitRate"] == "50.00%"
        assert data["memoryHuman"] == "1.00K"
        assert "dbSize" in data

    @pytest.mark.asyncio
    async def test_cache_stats_while_redis_down(self, settings, fake_redis):
        """Test the disconnected shape instead of an error."""
        fake_redis.down = True
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            response = await client.get(f"{BASE}/cache")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["connected"] is False
        assert data["hitRate"] == "0%"
        assert data["memoryHuman"] == "N/A"

    @pytest.mark.asyncio
    async def test_detailed_metrics(self, settings, fake_redis):
        """Test the combined performance / cache / system report."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            response = await client.get(f"{BASE}/metrics")

        data = response.json()["data"]
        assert set(data) == {"performance", "cache", "system", "timestamp"}
        assert "percentiles" in data["performance"]
        assert "hitRate" in data["cache"]
        assert {"memory", "uptime", "pythonVersion", "platform", "arch", "redis"} <= set(data["system"])


@pytest.mark.unit
class TestMaintenanceRoutes:
    """Test clearing metrics and cache, and warmup."""

    @pytest.mark.asyncio
    async def test_clear_metrics(self, settings, fake_redis):
        """Test that the metric window is emptied."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            await client.get("/")
            response = await client.delete(f"{BASE}/metrics")

        assert response.json() == {"success": True, "message": "Performance metrics cleared"}
        assert app.state.services.performance.get_path_metrics("/") == []

    @pytest.mark.asyncio
    async def test_clear_cache_by_pattern(self, settings, fake_redis):
        """Test pattern deletion with the deleted count."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            cache = app.state.services.cache
            await cache.cache_user("1", {})
            await cache.cache_user("2", {})
            await cache.cache_categories([])
            response = await client.delete(f"{BASE}/cache", params={"pattern": "user:*"})

        assert response.json() == {
            "success": True,
            "message": "Cleared 2 cache entries matching pattern: user:*",
            "count": 2,
        }
        assert "category:all" in fake_redis.data

    @pytest.mark.asyncio
    async def test_clear_all_cache(self, settings, fake_redis):
        """Test that omitting the pattern flushes everything."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            await app.state.services.cache.cache_user("1", {})
            response = await client.delete(f"{BASE}/cache")

        assert response.json()["message"] == "All cache cleared"
        assert not any(key.startswith("user:") for key in fake_redis.data)

    @pytest.mark.asyncio
    async def test_warmup(self, settings, fake_redis):
        """Test that warmup is acknowledged and runs in the background."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            response = await client.post(
                f"{BASE}/cache/warmup",
                json={"categories": [{"id": "c1"}], "popularSkillsByCategory": {"c1": [{"id": "s1"}]}},
            )
            await app.state.services.tasks.drain()

        assert response.json() == {"success": True, "message": "Cache warmup initiated"}
        assert "category:all" in fake_redis.data
        assert "skill:category:c1" in fake_redis.data

    @pytest.mark.asyncio
    async def test_warmup_without_body(self, settings, fake_redis):
        """Test that an empty warmup request is accepted."""
        app = build_app(settings, fake_redis)

        async with running_app(app) as client:
            response = await client.post(f"{BASE}/cache/warmup")

        assert response.status_code == 200
        assert response.json()["message"] == "Cache warmup initiated"


@pytest.mark.unit
class TestAdminGuard:
    """Test X-Admin-Token enforcement."""

    @pytest.fixture
    def client(self, settings, fake_redis):
        app = build_app(settings, fake_redis, ADMIN_API_TOKEN="s3cret")
        with TestClient(app) as client:
            yield client

    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/stats"),
            ("GET", "/cache"),
            ("GET", "/metrics"),
            ("DELETE", "/metrics"),
            ("DELETE", "/cache"),
            ("POST", "/cache/warmup"),
        ],
    )
    def test_admin_endpoints_require_token(self, client, method, path):
        """Test 403 without the token and success with it."""
        denied = client.request(method, f"{BASE}{path}")
        wrong = client.request(method, f"{BASE}{path}", headers={"X-Admin-Token": "nope"})
        allowed = client.request(method, f"{BASE}{path}", headers={"X-Admin-Token": "s3cret"})

        assert denied.status_code == 403
        assert wrong.status_code == 403
        assert allowed.status_code == 200

    def test_health_is_public(self, client):
        """Test that health never asks for the token."""
        response = client.get(f"{BASE}/health")
        assert response.status_code in (200, 503)
