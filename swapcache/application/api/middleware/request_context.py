"""
Request Context Middleware

Binds a request ID to the logging context for the lifetime of a request.
The ID is taken from the incoming X-Request-ID header when present,
otherwise generated, and echoed on the response for correlation.
"""

import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from swapcache.core.config.constants import HEADER_REQUEST_ID
from swapcache.core.logging.logger import clear_request_id, set_request_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()
