"""Request Logging Middleware — one log line per HTTP request with timing.

Invariants:
    - 5xx → ERROR, 4xx → WARNING, slow (> SLOW_REQUEST_THRESHOLD_MS) → WARNING, else INFO
    - Never alters the response
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status, and duration of every request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000
        self._log_response(request, response, duration_ms)
        return response

    def _log_response(
        self, request: Request, response: Response, duration_ms: float,
    ) -> None:
        method = request.method
        path = request.url.path
        status = response.status_code
        extra = {"path": path}

        if status >= 500:
            logger.error("%s %s -> %d (%.1fms)", method, path, status, duration_ms, extra=extra)
        elif status >= 400:
            logger.warning("%s %s -> %d (%.1fms)", method, path, status, duration_ms, extra=extra)
        elif duration_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                "%s %s -> %d (%.1fms) SLOW", method, path, status, duration_ms, extra=extra,
            )
        else:
            logger.info("%s %s -> %d (%.1fms)", method, path, status, duration_ms, extra=extra)
