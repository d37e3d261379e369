"""Custom middleware for the Docsmith API.

This module provides middleware components for request logging and
response timing.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every request and tags its log context.

    The request id is bound to structlog's context variables for the
    duration of the request. Ingestion tasks started by the request inherit
    that context, so their log lines carry the id of the push that caused
    them.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
                client_host=request.client.host if request.client else None,
            )

            start_time = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as e:
                logger.exception(
                    "Request failed with unhandled exception",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000

            log_method = logger.info if response.status_code < 400 else logger.warning
            log_method(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class TimingMiddleware(BaseHTTPMiddleware):
    """Middleware that adds an X-Response-Time header to every response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Response-Time"] = f"{(time.perf_counter() - start_time) * 1000:.2f}ms"
        return response
