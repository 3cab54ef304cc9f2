"""
Rate Limiting Middleware and Dependency

Two ways to apply a RateLimitPolicy:

1. ``RateLimitMiddleware``: one policy over a set of path prefixes (the
   global limit). Honours the policy's skip flags by refunding the counter
   after the response status is known.

2. ``rate_limit(policy)``: a route dependency for per-endpoint presets:

       @router.post("/auth/login", dependencies=[Depends(rate_limit(AUTH))])

   The dependency runs before the status is known, so it leaves a note on
   ``request.state`` and ``RateLimitRefundMiddleware`` (always installed by
   ``setup_middleware``) applies the skip flags once the response exists.

Both set X-RateLimit-Limit / -Remaining / -Reset on every counted response
and answer 429 with Retry-After once the window is exhausted. Any unexpected
failure in the limiter lets the request through (fail-open).
"""

from collections.abc import Callable, Sequence

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware

from swapcache.application.api.dependencies import get_services
from swapcache.application.container import ServiceContainer
from swapcache.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_RETRY_AFTER,
    Stage,
)
from swapcache.core.exceptions import RateLimitExceededError
from swapcache.core.logging.logger import get_logger, get_request_id
from swapcache.rate_limiting.rate_limiter import GENERAL, RateLimitPolicy, RateLimitResult

logger = get_logger(__name__)

# request.state attribute holding (policy, identifier) pairs counted by rate_limit()
PENDING_REFUNDS_ATTR = "rate_limit_checks"


def apply_rate_limit_headers(headers: MutableHeaders, result: RateLimitResult) -> None:
    headers[HEADER_RATE_LIMIT] = str(result.limit)
    headers[HEADER_RATE_REMAINING] = str(result.remaining)
    headers[HEADER_RATE_RESET] = result.reset_at_iso


def rate_limited_response(result: RateLimitResult, message: str) -> JSONResponse:
    """429 body and headers shared by the middleware and the exception handler."""
    response = JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "rate_limit_exceeded",
            "message": message,
            "retryAfter": result.retry_after_seconds,
        },
    )
    apply_rate_limit_headers(response.headers, result)
    response.headers[HEADER_RETRY_AFTER] = str(result.retry_after_seconds)
    return response


def refund_if_skipped(
    services: ServiceContainer, policy: RateLimitPolicy, identifier: str, status_code: int
) -> None:
    """Schedule a counter refund when the policy does not count ``status_code``."""
    if policy.should_refund(status_code):
        services.tasks.submit(services.rate_limiter.refund(identifier), name="rate-limit-refund")


def _matches(path: str, prefixes: Sequence[str] | None) -> bool:
    return prefixes is None or any(path.startswith(prefix) for prefix in prefixes)


async def _count_request(request: Request, policy: RateLimitPolicy, identifier: str) -> RateLimitResult | None:
    """Count one request; None when the limiter itself failed (fail-open)."""
    try:
        return await get_services(request).cache.check_rate_limit(
            identifier, policy.limit_for(request), policy.window_seconds
        )
    except Exception as e:
        logger.error(
            "Rate limit check failed, allowing request",
            stage=Stage.RATE_LIMITING,
            identifier=identifier,
            error=str(e),
            exc_info=True,
        )
        return None


def _log_exceeded(request: Request, policy: RateLimitPolicy, identifier: str, result: RateLimitResult) -> None:
    logger.warning(
        "Rate limit exceeded",
        stage=Stage.RATE_LIMITING,
        policy=policy.name,
        path=request.url.path,
        identifier=identifier,
        limit=result.limit,
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies one policy to every request under ``paths``.

    Args:
        app: The ASGI application
        policy: Window, limit and key function
        paths: Path prefixes to limit (None limits everything)
        exempt_paths: Path prefixes never limited (health checks, docs)
    """

    def __init__(
        self,
        app,
        policy: RateLimitPolicy = GENERAL,
        paths: Sequence[str] | None = None,
        exempt_paths: Sequence[str] = (),
    ):
        super().__init__(app)
        self.policy = policy
        self.paths = list(paths) if paths is not None else None
        self.exempt_paths = list(exempt_paths)

    def applies_to(self, path: str) -> bool:
        if any(path.startswith(prefix) for prefix in self.exempt_paths):
            return False
        return _matches(path, self.paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.applies_to(request.url.path):
            return await call_next(request)

        identifier = self.policy.identifier(request)
        result = await _count_request(request, self.policy, identifier)
        if result is None:
            return await call_next(request)

        if not result.allowed:
            _log_exceeded(request, self.policy, identifier, result)
            return rate_limited_response(result, self.policy.message)

        response = await call_next(request)
        apply_rate_limit_headers(response.headers, result)
        refund_if_skipped(get_services(request), self.policy, identifier, response.status_code)
        return response


class RateLimitRefundMiddleware(BaseHTTPMiddleware):
    """
    Applies skip flags for requests counted by ``rate_limit(policy)``.

    An unhandled exception counts as a 500 and is re-raised.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            self._settle(request, 500)
            raise
        self._settle(request, response.status_code)
        return response

    @staticmethod
    def _settle(request: Request, status_code: int) -> None:
        checks = getattr(request.state, PENDING_REFUNDS_ATTR, None)
        if not checks:
            return
        services = get_services(request)
        for policy, identifier in checks:
            refund_if_skipped(services, policy, identifier, status_code)


def rate_limit(policy: RateLimitPolicy) -> Callable:
    """
    Build a route dependency enforcing ``policy``.

    Raises RateLimitExceededError (rendered as 429 by the app's exception
    handler) when the window is exhausted. Policies with skip flags are
    settled by RateLimitRefundMiddleware after the response.
    """

    async def _check_rate_limit(request: Request, response: Response) -> RateLimitResult | None:
        identifier = policy.identifier(request)
        result = await _count_request(request, policy, identifier)
        if result is None:
            return None

        if not result.allowed:
            _log_exceeded(request, policy, identifier, result)
            raise RateLimitExceededError(policy.message, result=result, request_id=get_request_id())

        if policy.skip_successful_requests or policy.skip_failed_requests:
            checks = getattr(request.state, PENDING_REFUNDS_ATTR, None)
            if checks is None:
                checks = []
                setattr(request.state, PENDING_REFUNDS_ATTR, checks)
            checks.append((policy, identifier))

        apply_rate_limit_headers(response.headers, result)
        return result

    return _check_rate_limit


def add_rate_limit_middleware(
    app,
    policy: RateLimitPolicy = GENERAL,
    paths: Sequence[str] | None = None,
    exempt_paths: Sequence[str] = (),
) -> None:
    app.add_middleware(RateLimitMiddleware, policy=policy, paths=paths, exempt_paths=exempt_paths)
    logger.info(
        "Rate limit middleware registered",
        policy=policy.name,
        max_requests=policy.max_requests,
        window_seconds=policy.window_seconds,
    )
