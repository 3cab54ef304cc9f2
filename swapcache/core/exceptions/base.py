"""
Base Exception Class

Only the root exception lives here. Specialised exceptions are grouped in
their themed modules (cache.py, rate_limit.py).

Author: Platform Team
Date: 2026-03-02
"""

from typing import Any


class SwapCacheError(Exception):
    """
    Base exception for the caching and performance layer.

    Attributes:
        message: Error message
        request_id: Request ID for log correlation (if available)
        details: Additional error details (dict)

    Example:
        raise CacheConnectionError(
            "Redis did not answer PING",
            request_id="abc-123",
            details={"url": "redis://localhost:6379/0", "attempts": 10},
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "SwapCacheError":
        """Merge extra key/value pairs into ``details`` and return self."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details,
    ) -> "SwapCacheError":
        """
        Wrap a third-party exception, keeping its class name and message.

        Example:
            >>> try:
            ...     await client.ping()
            ... except redis.exceptions.ConnectionError as e:
            ...     raise CacheConnectionError.from_exception(e, url=url)
        """
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details,
        }
        return cls(message or str(exc), request_id=request_id, details=error_details)

