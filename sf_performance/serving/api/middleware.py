"""
HTTP middleware shared by every route.

RequestLoggingMiddleware tags each request with an id (taken from
X-Request-ID when the caller sends one) that is bound into the structlog
context for the whole request, so ingestion and query logs can be traced
back to one upload or dashboard call. The viewer headers are logged too.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id and log each call with its status and latency"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            log = logger.bind(method=request.method, path=request.url.path)
            try:
                response = await call_next(request)
            except Exception:
                log.exception("Request failed", elapsed_ms=_elapsed_ms(started))
                raise

            log.info(
                "Request handled",
                status_code=response.status_code,
                elapsed_ms=_elapsed_ms(started),
                role=request.headers.get("X-User-Role"),
                user_code=request.headers.get("X-User-Code"),
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{_elapsed_ms(started)}ms"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach fixed security headers; dashboard data is never cached"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in STATIC_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
