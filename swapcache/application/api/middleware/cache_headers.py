"""
HTTP Cache-Control Helpers

Route-level dependencies:

    @router.get("/me", dependencies=[Depends(no_cache)])
    @router.get("/categories", dependencies=[Depends(cache_control(3600))])

and a middleware form of ``no_cache`` for whole path prefixes (admin and
performance endpoints must never be stored by browsers or proxies).
"""

from collections.abc import Callable, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from swapcache.core.config.constants import NO_CACHE_HEADERS


def no_cache(response: Response) -> None:
    """Forbid any client or intermediary caching of the response."""
    response.headers.update(NO_CACHE_HEADERS)


def cache_control(max_age: int) -> Callable[[Response], None]:
    """Allow public caching for ``max_age`` seconds."""
    if max_age < 0:
        raise ValueError("max_age must be >= 0")

    def _set_cache_control(response: Response) -> None:
        response.headers["Cache-Control"] = f"public, max-age={max_age}"

    return _set_cache_control


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Applies the no-cache headers to every response under ``paths``."""

    def __init__(self, app, paths: Sequence[str] | None = None):
        super().__init__(app)
        self.paths = list(paths) if paths is not None else None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.paths is None or any(request.url.path.startswith(p) for p in self.paths):
            response.headers.update(NO_CACHE_HEADERS)
        return response
