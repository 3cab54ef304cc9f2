"""
HTTP Response Cache Middleware

ResponseCacheMiddleware
-----------------------
Caches successful JSON GET responses in Redis.

    key = api:{METHOD}:{path}:{user_id|anonymous}:{sorted query params as JSON}

- Hit: 200 with the stored body plus ``cached: true`` and ``cacheTime``
  (ISO-8601). A stored body that is not a JSON object is wrapped as
  ``{"data": ...}`` first.
- Miss: the handler runs; a 2xx JSON body is written with the TTL from a
  background task, so the client never waits on the write.
- Redis not ready: the middleware steps aside entirely.

CacheInvalidationMiddleware
---------------------------
After a successful (2xx) mutating request under its paths, deletes every
cached response whose key contains one of its patterns
(``api:*{pattern}*``), again from a background task.

Both middlewares are per path prefix, so a router opts in by being listed:

    app.add_middleware(ResponseCacheMiddleware, ttl=600, paths=["/api/v1/skills"])
    app.add_middleware(
        CacheInvalidationMiddleware, patterns=["/skills"], paths=["/api/v1/skills"]
    )
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from swapcache.application.api.dependencies import get_services
from swapcache.core.config.constants import MUTATING_METHODS, REDIS_KEY_API_RESPONSE, Stage
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.cache_service import CacheService
from swapcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

DEFAULT_RESPONSE_TTL = 300


def _matches(path: str, prefixes: Sequence[str] | None) -> bool:
    return prefixes is None or any(path.startswith(prefix) for prefix in prefixes)


def build_response_cache_key(request: Request) -> str:
    """
    Deterministic key for a GET request.

    Query parameters are sorted by name; repeated parameters keep their
    order as a list. The user segment comes only from ``request.state.user_id``
    (set by authentication), never from request headers.
    """
    params: dict[str, Any] = {}
    for name in sorted(set(request.query_params.keys())):
        values = request.query_params.getlist(name)
        params[name] = values[0] if len(values) == 1 else values

    user = getattr(request.state, "user_id", None) or "anonymous"
    query = orjson.dumps(params).decode()
    return f"{REDIS_KEY_API_RESPONSE}:{request.method}:{request.url.path}:{user}:{query}"


def annotate_cached_body(body: Any, cached_at: datetime | None = None) -> dict[str, Any]:
    cached_at = cached_at or datetime.now(timezone.utc)
    payload = dict(body) if isinstance(body, dict) else {"data": body}
    payload["cached"] = True
    payload["cacheTime"] = cached_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return payload


def _is_json(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().endswith("json")


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Serves GET responses from Redis when possible.

    Args:
        app: The ASGI application
        ttl: Seconds a cached response lives
        paths: Path prefixes to cache (None caches every GET)
    """

    def __init__(self, app, ttl: int = DEFAULT_RESPONSE_TTL, paths: Sequence[str] | None = None):
        super().__init__(app)
        self.ttl = ttl
        self.paths = list(paths) if paths is not None else None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method != "GET" or not _matches(request.url.path, self.paths):
            return await call_next(request)

        services = get_services(request)
        store = services.redis
        if not store.is_ready():
            return await call_next(request)

        key = build_response_cache_key(request)
        cached = await store.get_json(key)
        if cached is not None:
            logger.debug("Response cache HIT", stage=Stage.RESPONSE_CACHE, key=key)
            return JSONResponse(status_code=200, content=annotate_cached_body(cached))

        logger.debug("Response cache MISS", stage=Stage.RESPONSE_CACHE, key=key)
        response = await call_next(request)

        if not 200 <= response.status_code < 300 or not _is_json(response):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        services.tasks.submit(self._store(store, key, body), name="response-cache-write")

        return Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
            background=response.background,
        )

    async def _store(self, store: RedisClient, key: str, body: bytes) -> None:
        stored = await store.set(key, body.decode(), self.ttl)
        if stored:
            logger.debug("Response cached", stage=Stage.RESPONSE_CACHE, key=key, ttl=self.ttl)


class CacheInvalidationMiddleware(BaseHTTPMiddleware):
    """
    Drops cached responses after successful writes.

    Args:
        app: The ASGI application
        patterns: Substrings of cache keys to delete (``api:*{pattern}*``)
        paths: Path prefixes whose writes trigger invalidation (None: all)
        methods: HTTP methods that count as writes
    """

    def __init__(
        self,
        app,
        patterns: Sequence[str],
        paths: Sequence[str] | None = None,
        methods: Sequence[str] = tuple(MUTATING_METHODS),
    ):
        super().__init__(app)
        self.patterns = list(patterns)
        self.paths = list(paths) if paths is not None else None
        self.methods = {method.upper() for method in methods}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if (
            request.method in self.methods
            and _matches(request.url.path, self.paths)
            and 200 <= response.status_code < 300
        ):
            services = get_services(request)
            services.tasks.submit(self._invalidate(services.cache), name="response-cache-invalidation")

        return response

    async def _invalidate(self, cache: CacheService) -> None:
        for pattern in self.patterns:
            deleted = await cache.invalidate_pattern(f"{REDIS_KEY_API_RESPONSE}:*{pattern}*")
            logger.info(
                "Response cache invalidated",
                stage=Stage.CACHE_INVALIDATION,
                pattern=pattern,
                deleted=deleted,
            )


def add_response_cache_middleware(app, ttl: int = DEFAULT_RESPONSE_TTL, paths: Sequence[str] | None = None) -> None:
    app.add_middleware(ResponseCacheMiddleware, ttl=ttl, paths=paths)
    logger.info("Response cache middleware registered", ttl=ttl, paths=paths)
