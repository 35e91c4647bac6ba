"""
StudySnap Backend - Request ID Middleware
===========================================

What:  Assigns a short correlation id to each request and echoes it back.
How:   Reuses a client-sent X-Request-ID (trimmed to 64 chars) or generates an
       8-char id; stores it in a ContextVar and request.state, and sets the
       X-Request-ID response header.
Who:   Read by the access log, the error handlers in main.py and
       RequestIDLogFilter (adds `request_id` to every log record).
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIDLogFilter(logging.Filter):
    """Adds the current request id as `record.request_id` ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = (request.headers.get("X-Request-ID") or "").strip()[:MAX_CLIENT_ID_LENGTH]
        if not rid:
            rid = new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
