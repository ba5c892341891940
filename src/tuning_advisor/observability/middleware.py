"""
tuning_advisor.observability.middleware

HTTP middleware for request-scoped logging context.

Responsibilities:
- Generate/propagate request IDs.
- Bind request metadata into structlog contextvars and log one line per request.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from tuning_advisor.observability.logging import get_logger

log = get_logger(__name__)

REQUEST_ID_HEADER = "x-request-id"
# Probes hit these every few seconds; they are logged at debug only.
QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            if request.url.path in QUIET_PATHS:
                emit = log.debug
            elif response.status_code >= 500:
                emit = log.error
            elif response.status_code >= 400:
                emit = log.warning
            else:
                emit = log.info
            emit("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
