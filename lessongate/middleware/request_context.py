"""Request context middleware.

Assigns every request an id (the client's X-Request-ID when it sent one),
stores it in a ContextVar so every log record emitted while handling the
request carries it, and logs one summary line per request.

A ContextVar rather than a thread-local: concurrent requests share the
event loop thread, but each task sees its own copy of the variable.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from lessongate.core.logging import request_id_var

logger = logging.getLogger(__name__)

# Ids longer than this are replaced: the value is echoed into logs and
# response headers.
_MAX_REQUEST_ID_LEN = 128


def _incoming_request_id(request: Request) -> str:
    candidate = request.headers.get("x-request-id", "")
    if candidate and len(candidate) <= _MAX_REQUEST_ID_LEN and candidate.isprintable():
        return candidate
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _incoming_request_id(request)
        token = request_id_var.set(req_id)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            logger.info(
                "%s %s → %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            request_id_var.reset(token)
