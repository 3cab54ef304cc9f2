#!/usr/bin/env python3
"""
Domain Cache Service

Architecture:
    CacheService (Public API)
        ├── RedisClient (fail-safe key-value store)
        └── FixedWindowRateLimiter (ratelimit:* counters)

Each domain read/write pins a {prefix, TTL} pair so callers never build raw
keys:

    user:{id}                   MEDIUM
    category:all                VERY_LONG
    skill:category:{id}         LONG
    search:{hash}               SHORT
    analytics:{type}            MEDIUM
    session:{id}                USER_SESSION
    notification:count:{user}   SHORT

No method raises because Redis is unavailable; misses and False are
returned instead. ``remember`` is the one exception to "never raises": errors
from the caller's compute function propagate untouched.

Author: Platform Team
Date: 2026-03-05
"""

import asyncio
import base64
import hashlib
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import orjson

from swapcache.core.config.constants import CachePrefix, CacheTTL
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.redis_client import RedisClient, StoreStats
from swapcache.rate_limiting.rate_limiter import FixedWindowRateLimiter, RateLimitResult

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SEARCH_KEY_LENGTH = 32


class CacheService:
    """
    High-level caching API for the marketplace domain.

    Usage:
        cache = CacheService(redis_client)
        await cache.cache_user("u1", {"userId": "u1", "name": "A"})
        profile = await cache.get_user("u1")

        skills = await cache.remember(
            "skill:popular", CacheTTL.LONG, lambda: repo.popular_skills()
        )
    """

    def __init__(
        self,
        store: RedisClient,
        rate_limiter: FixedWindowRateLimiter | None = None,
        search_key_length: int = DEFAULT_SEARCH_KEY_LENGTH,
    ):
        self._store = store
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter(store)
        self._search_key_length = search_key_length

    @property
    def store(self) -> RedisClient:
        return self._store

    # -------------------------------------------------------------------------
    # Key helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def build_key(prefix: CachePrefix, identifier: str) -> str:
        """``{prefix}{identifier}``, e.g. ``user:42``."""
        return f"{CachePrefix(prefix).value}{identifier}"

    def search_hash(self, query: str, filters: Mapping[str, Any] | None) -> str:
        """
        Stable identifier for a (query, filters) pair.

        Filters are encoded with sorted keys so logically equal dicts hash
        equal regardless of insertion order. The SHA-256 digest is
        base64url-encoded and truncated to the configured width.
        """
        canonical = orjson.dumps({"query": query, "filters": filters}, option=orjson.OPT_SORT_KEYS)
        digest = hashlib.sha256(canonical).digest()
        return base64.urlsafe_b64encode(digest).decode().rstrip("=")[: self._search_key_length]

    def _notification_key(self, user_id: str) -> str:
        return self.build_key(CachePrefix.NOTIFICATION, f"count:{user_id}")

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def cache_user(self, user_id: str, user_data: Any) -> bool:
        return await self._store.set_json(self.build_key(CachePrefix.USER, user_id), user_data, CacheTTL.MEDIUM)

    async def get_user(self, user_id: str, model: Any = None) -> Any:
        return await self._store.get_json(self.build_key(CachePrefix.USER, user_id), model)

    async def invalidate_user(self, user_id: str) -> bool:
        return await self._store.delete(self.build_key(CachePrefix.USER, user_id))

    # -------------------------------------------------------------------------
    # Categories and skills
    # -------------------------------------------------------------------------

    async def cache_categories(self, categories: list[Any]) -> bool:
        return await self._store.set_json(self.build_key(CachePrefix.CATEGORY, "all"), categories, CacheTTL.VERY_LONG)

    async def get_categories(self, model: Any = None) -> Any:
        return await self._store.get_json(self.build_key(CachePrefix.CATEGORY, "all"), model)

    async def cache_skills_by_category(self, category_id: str, skills: list[Any]) -> bool:
        key = self.build_key(CachePrefix.SKILL, f"category:{category_id}")
        return await self._store.set_json(key, skills, CacheTTL.LONG)

    async def get_skills_by_category(self, category_id: str, model: Any = None) -> Any:
        return await self._store.get_json(self.build_key(CachePrefix.SKILL, f"category:{category_id}"), model)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def cache_search(self, query: str, filters: Mapping[str, Any] | None, results: Any) -> bool:
        key = self.build_key(CachePrefix.SEARCH, self.search_hash(query, filters))
        return await self._store.set_json(key, results, CacheTTL.SHORT)

    async def get_search(self, query: str, filters: Mapping[str, Any] | None, model: Any = None) -> Any:
        key = self.build_key(CachePrefix.SEARCH, self.search_hash(query, filters))
        return await self._store.get_json(key, model)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    async def cache_analytics(self, analytics_type: str, data: Any) -> bool:
        return await self._store.set_json(self.build_key(CachePrefix.ANALYTICS, analytics_type), data, CacheTTL.MEDIUM)

    async def get_analytics(self, analytics_type: str, model: Any = None) -> Any:
        return await self._store.get_json(self.build_key(CachePrefix.ANALYTICS, analytics_type), model)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def cache_session(self, session_id: str, session_data: Any) -> bool:
        key = self.build_key(CachePrefix.SESSION, session_id)
        return await self._store.set_json(key, session_data, CacheTTL.USER_SESSION)

    async def get_session(self, session_id: str, model: Any = None) -> Any:
        return await self._store.get_json(self.build_key(CachePrefix.SESSION, session_id), model)

    async def delete_session(self, session_id: str) -> bool:
        return await self._store.delete(self.build_key(CachePrefix.SESSION, session_id))

    # -------------------------------------------------------------------------
    # Notification counters
    # -------------------------------------------------------------------------

    async def cache_notification_count(self, user_id: str, count: int) -> bool:
        return await self._store.set(self._notification_key(user_id), str(count), CacheTTL.SHORT)

    async def get_notification_count(self, user_id: str) -> int | None:
        key = self._notification_key(user_id)
        value = await self._store.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning("Non-integer notification count in cache", key=key, value=value)
            return None

    async def increment_notification_count(self, user_id: str) -> int:
        """
        Increment the unread counter and refresh its SHORT TTL.

        Returns:
            New count (0 when Redis is unavailable)
        """
        key = self._notification_key(user_id)
        count = await self._store.incr(key)
        await self._store.expire(key, CacheTTL.SHORT)
        return count

    # -------------------------------------------------------------------------
    # Rate limiting
    # -------------------------------------------------------------------------

    async def check_rate_limit(self, identifier: str, limit: int, window_seconds: int) -> RateLimitResult:
        return await self._rate_limiter.check(identifier, limit, window_seconds)

    # -------------------------------------------------------------------------
    # Cache-aside
    # -------------------------------------------------------------------------

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T]],
        model: Any = None,
    ) -> T:
        """
        Return the cached value for ``key`` or compute, store and return it.

        STAGE-2.5: Cache-aside pattern

        - Hit: ``compute`` is not called
        - Miss: ``compute`` runs once, its result is written before returning
        - ``compute`` raising: the exception propagates and nothing is cached

        A stored JSON ``null`` reads as a miss, so None results are recomputed
        on every call.
        """
        cached = await self._store.get_json(key, model)
        if cached is not None:
            logger.debug("Cache HIT", key=key)
            return cached

        logger.debug("Cache MISS", key=key)
        result = await compute()
        await self._store.set_json(key, result, ttl)
        return result

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate_pattern(self, pattern: str) -> int:
        count = await self._store.delete_pattern(pattern)
        logger.info("Cache invalidated", pattern=pattern, deleted=count)
        return count

    async def invalidate_user_caches(self, user_id: str) -> None:
        """Drop the profile, unread counter and session of one user."""
        await asyncio.gather(
            self.invalidate_user(user_id),
            self._store.delete(self._notification_key(user_id)),
            self._store.delete(self.build_key(CachePrefix.SESSION, user_id)),
        )

    # -------------------------------------------------------------------------
    # Warmup and maintenance
    # -------------------------------------------------------------------------

    async def warmup(
        self,
        categories: list[Any] | None = None,
        popular_skills_by_category: Mapping[str, list[Any]] | None = None,
    ) -> int:
        """
        Pre-populate the category and per-category skill caches.

        Returns:
            Number of entries written successfully
        """
        logger.info("Warming up cache")

        writes: list[Awaitable[bool]] = []
        if categories is not None:
            writes.append(self.cache_categories(categories))
        for category_id, skills in (popular_skills_by_category or {}).items():
            writes.append(self.cache_skills_by_category(category_id, skills))

        results = await asyncio.gather(*writes)
        written = sum(1 for ok in results if ok)

        logger.info("Cache warmup completed", written=written, requested=len(writes))
        return written

    async def get_stats(self) -> StoreStats:
        return await self._store.get_stats()

    async def clear_all(self) -> bool:
        logger.warning("Clearing all caches")
        return await self._store.flush_all()
