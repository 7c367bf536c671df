"""Custom middleware for the deploy tracker API."""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Read-only calls that polling clients repeat every few seconds
QUIET_METHODS = frozenset({"GET", "HEAD"})


def access_log_level(method: str, status_code: int) -> int:
    """Server errors are ERROR, writes are INFO, successful polls only DEBUG."""
    if status_code >= 500:
        return logging.ERROR
    if method in QUIET_METHODS and status_code < 400:
        return logging.DEBUG
    return logging.INFO


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and logs it with its timing.

    The ID comes from the client's X-Request-ID header when present, so a
    polling client can correlate its calls, and is generated otherwise. It
    is exposed to handlers as `request.state.request_id` and echoed back in
    the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.log(
            access_log_level(request.method, response.status_code),
            "[%s] %s %s → %s (%sms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
