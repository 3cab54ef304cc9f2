"""
Fixed-Window Rate Limiter

STAGE-3: Rate limiting

Each identifier owns one Redis counter, ``ratelimit:{identifier}``. The
first hit of a window creates the counter at 1 and starts its expiry in the
same Lua script, so a counter never lives without a window. Requests are
allowed while the count is at or below the limit.

When Redis is unavailable the counter reads as 0 and every request is
allowed (fail-open): losing the cache must not take the API down.

Policies bundle a window, a limit and a key function; the presets mirror the
limits used across the marketplace API (general, auth, search, upload, ...).
``tier_based`` builds a policy whose limit follows the caller's subscription
tier.

Author: Platform Team
Date: 2026-03-05
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from starlette.requests import Request

from swapcache.core.config.constants import HEADER_API_KEY, HEADER_USER_ID, CachePrefix
from swapcache.core.logging.logger import get_logger
from swapcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

DEFAULT_TIER = "FREE"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate-limit check."""

    allowed: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    limit: int
    count: int = 0

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until the window resets (never negative)."""
        return max(0, math.ceil((self.reset_at - time.time() * 1000) / 1000))

    @property
    def reset_at_iso(self) -> str:
        reset = datetime.fromtimestamp(self.reset_at / 1000, tz=timezone.utc)
        return reset.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FixedWindowRateLimiter:
    """
    Counts requests per identifier in fixed windows.

    Usage:
        limiter = FixedWindowRateLimiter(redis_client)
        result = await limiter.check("ip:1.2.3.4", limit=100, window_seconds=900)
        if not result.allowed:
            ...
    """

    def __init__(self, store: RedisClient, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock

    @staticmethod
    def key_for(identifier: str) -> str:
        return f"{CachePrefix.RATE_LIMIT.value}{identifier}"

    async def check(self, identifier: str, limit: int, window_seconds: int) -> RateLimitResult:
        """
        Count one request against ``identifier`` and decide whether it is allowed.

        Args:
            identifier: Caller identity, e.g. ``"/api/v1/search:user-42"``
            limit: Requests allowed per window (>= 1)
            window_seconds: Window length (>= 1)
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        count, ttl = await self._store.incr_with_expire(self.key_for(identifier), window_seconds)
        now_ms = int(self._clock() * 1000)

        # No TTL means Redis is down (count 0) or the key lost its expiry;
        # report the full window either way.
        seconds_left = ttl if ttl >= 0 else window_seconds
        reset_at = now_ms + seconds_left * 1000

        if count == 0:
            logger.debug("Rate limit store unavailable, allowing request", stage="3.0", identifier=identifier)

        return RateLimitResult(
            allowed=count <= limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
            limit=limit,
            count=count,
        )

    async def refund(self, identifier: str) -> None:
        """
        Give back one request, for responses a policy chooses not to count.

        Only a counter inside a live window is decremented; once the window
        has expired there is nothing to give back, and the next request must
        still open a fresh window at 1.
        """
        count = await self._store.decr_if_live(self.key_for(identifier))
        if count is None:
            logger.debug("Rate limit window already closed, nothing to refund", stage="3.1", identifier=identifier)


# =============================================================================
# KEY FUNCTIONS
# =============================================================================


def get_client_ip(request: Request) -> str:
    """
    Client address as seen by the ASGI server.

    Run uvicorn with ``--proxy-headers`` behind a load balancer so this is the
    real client and not the proxy.
    """
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_request_user_id(request: Request) -> str | None:
    """
    Authenticated user id, if any.

    Priority: ``request.state.user_id`` (set by auth middleware) > X-User-ID header
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return str(user_id)
    return request.headers.get(HEADER_USER_ID) or None


def ip_key(request: Request) -> str:
    return get_client_ip(request)


def user_key(request: Request) -> str:
    """User id for authenticated requests, client IP otherwise."""
    return get_request_user_id(request) or get_client_ip(request)


def api_key_key(request: Request) -> str:
    """X-API-Key header when present, client IP otherwise."""
    return request.headers.get(HEADER_API_KEY) or get_client_ip(request)


def get_request_tier(request: Request) -> str:
    """Subscription tier set by authentication (``request.state.subscription_tier``), FREE otherwise."""
    tier = getattr(request.state, "subscription_tier", None)
    return str(tier).upper() if tier else DEFAULT_TIER


# =============================================================================
# POLICIES
# =============================================================================


@dataclass(frozen=True)
class RateLimitPolicy:
    """
    Window, limit and identity for one class of endpoints.

    ``skip_successful_requests`` / ``skip_failed_requests`` refund the counter
    after a 2xx / >=400 response, so only the other outcome counts.

    ``limit_func`` resolves the limit per request (see ``tier_based``);
    ``max_requests`` is used when it is not set.
    """

    name: str
    window_seconds: int
    max_requests: int
    message: str = "Too many requests, please try again later"
    key_func: Callable[[Request], str] = ip_key
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False
    limit_func: Callable[[Request], int] | None = None

    def identifier(self, request: Request) -> str:
        return f"{request.url.path}:{self.key_func(request)}"

    def limit_for(self, request: Request) -> int:
        if self.limit_func is None:
            return self.max_requests
        return self.limit_func(request)

    def should_refund(self, status_code: int) -> bool:
        if self.skip_successful_requests and 200 <= status_code < 300:
            return True
        return self.skip_failed_requests and status_code >= 400

    def with_limits(self, window_seconds: int, max_requests: int) -> "RateLimitPolicy":
        """Copy of this policy with a different window and limit."""
        return replace(self, window_seconds=window_seconds, max_requests=max_requests)


GENERAL = RateLimitPolicy(
    name="general",
    window_seconds=15 * 60,
    max_requests=100,
    message="Too many requests from this IP, please try again after 15 minutes",
)

AUTH = RateLimitPolicy(
    name="auth",
    window_seconds=15 * 60,
    max_requests=5,
    message="Too many login attempts, please try again after 15 minutes",
    skip_successful_requests=True,
)

EXPENSIVE_OPERATION = RateLimitPolicy(
    name="expensive",
    window_seconds=60,
    max_requests=10,
    message="Too many requests for this operation, please slow down",
    key_func=user_key,
)

SEARCH = RateLimitPolicy(
    name="search",
    window_seconds=60,
    max_requests=30,
    message="Too many search requests, please slow down",
    key_func=user_key,
)

UPLOAD = RateLimitPolicy(
    name="upload",
    window_seconds=60 * 60,
    max_requests=20,
    message="Upload limit exceeded, please try again later",
    key_func=user_key,
)

API = RateLimitPolicy(
    name="api",
    window_seconds=60,
    max_requests=60,
    message="API rate limit exceeded",
    key_func=user_key,
)

PRESETS: dict[str, RateLimitPolicy] = {
    policy.name: policy for policy in (GENERAL, AUTH, EXPENSIVE_OPERATION, SEARCH, UPLOAD, API)
}


def tier_based(free: int, basic: int, pro: int, window_seconds: int = 60) -> RateLimitPolicy:
    """
    Per-user policy whose limit depends on the caller's subscription tier.

    Unknown or missing tiers get the FREE limit.

    Usage:
        @router.get("/matches", dependencies=[Depends(rate_limit(tier_based(10, 50, 200)))])
    """
    limits = {"FREE": free, "BASIC": basic, "PRO": pro}

    def limit_for_tier(request: Request) -> int:
        return limits.get(get_request_tier(request), free)

    return RateLimitPolicy(
        name="tier",
        window_seconds=window_seconds,
        max_requests=free,
        message="Rate limit exceeded for your subscription tier. Upgrade for higher limits.",
        key_func=user_key,
        limit_func=limit_for_tier,
    )
