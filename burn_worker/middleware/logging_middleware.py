"""
HTTP request logging middleware.

One structured line per request. Health-check endpoints log at debug so a polling
orchestrator does not drown out run logs.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger("http")

QUIET_PATHS = frozenset({"/health", "/healthz"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the request's lifetime and log the outcome."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            path = request.url.path

            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            elif path in QUIET_PATHS:
                log = logger.debug
            else:
                log = logger.info

            log(
                "http_request",
                method=request.method,
                path=path,
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.unbind_contextvars("request_id")
