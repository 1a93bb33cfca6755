"""
Request middleware for logging, timing, and request ID tracking.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from transit_booking.core.logging import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds request_id, method, path and the caller's X-User-ID into the
    structlog context, so every engine event logged while serving the
    request (reservation_created, reservation_rejected, ...) carries them.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        caller = request.headers.get("X-User-ID")
        if caller:
            structlog.contextvars.bind_contextvars(caller_user_id=caller)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
