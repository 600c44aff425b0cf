"""
HTTP middleware — request logging with correlation IDs and timing.

Each request gets a request_id (taken from X-Request-ID when the client sends
one) that is bound to every log line emitted while handling it and echoed back
in the response header.
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from lovebrain.lovebrain_logging import bind_request_id, clear_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LEN = 64


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind request_id, log method/path/status/duration for every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:MAX_REQUEST_ID_LEN]
        if not request_id:
            request_id = uuid.uuid4().hex[:16]
        bind_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "http_request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            clear_request_context()
            raise
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        clear_request_context()
        return response
