"""
Unit Tests for Constants

Tests key prefixes and TTL tiers that every cache key depends on.
"""

import pytest

from swapcache.core.config.constants import PERCENTILES, CachePrefix, CacheTTL


@pytest.mark.unit
class TestCachePrefix:
    """Test cache key namespaces."""

    def test_every_prefix_ends_with_colon(self):
        """Test that prefixes can be concatenated with an identifier directly."""
        for prefix in CachePrefix:
            assert prefix.value.endswith(":")

    def test_prefixes_are_unique(self):
        """Test that no two namespaces share a prefix."""
        values = [prefix.value for prefix in CachePrefix]
        assert len(values) == len(set(values))

    def test_rate_limit_prefix(self):
        """Test the counter namespace used by the rate limiter."""
        assert CachePrefix.RATE_LIMIT == "ratelimit:"


@pytest.mark.unit
class TestCacheTTL:
    """Test TTL tiers."""

    def test_tier_values(self):
        """Test that TTL tiers match their documented durations."""
        assert CacheTTL.SHORT == 300
        assert CacheTTL.MEDIUM == 1800
        assert CacheTTL.LONG == 3600
        assert CacheTTL.VERY_LONG == 86400
        assert CacheTTL.USER_SESSION == 604800

    def test_tiers_are_increasing(self):
        """Test that tiers are declared from shortest to longest."""
        values = [ttl.value for ttl in CacheTTL]
        assert values == sorted(values)

    def test_percentiles_reported(self):
        """Test the percentiles exposed by the stats endpoint."""
        assert PERCENTILES == (50, 75, 90, 95, 99)
