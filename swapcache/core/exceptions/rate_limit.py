"""
Rate Limiting Exceptions

Author: Platform Team
Date: 2026-03-02
"""

from typing import TYPE_CHECKING, Any

from swapcache.core.exceptions.base import SwapCacheError

if TYPE_CHECKING:
    from swapcache.rate_limiting.rate_limiter import RateLimitResult


class RateLimitError(SwapCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a client exceeds its request quota for the current window.

    The 429 response built from this error carries:
    - X-RateLimit-Limit: maximum requests in the window
    - X-RateLimit-Remaining: always 0 here
    - X-RateLimit-Reset: ISO-8601 time the window ends
    - Retry-After: seconds until the window ends
    """

    def __init__(
        self,
        message: str,
        result: "RateLimitResult",
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        self.result = result
        self.details.setdefault("limit", result.limit)
        self.details.setdefault("retry_after", result.retry_after_seconds)
