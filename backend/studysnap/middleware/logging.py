"""
StudySnap Backend - Request Logging Middleware
================================================

What:  One access-log line per HTTP request on the `studysnap.access` logger.
How:   Measures wall time around call_next and logs method, path, status,
       duration, request id and client IP. Level follows the status class.
Who:   Registered in main.create_app, inside RequestIDMiddleware.

Example line:
    2026-01-15 12:00:00,000 [INFO] studysnap.access: POST /api/ingest 201 3456.8ms [a1b2c3d4] from 127.0.0.1

Request bodies (photos) and headers are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from studysnap.middleware.request_id import request_id_var

logger = logging.getLogger("studysnap.access")

# Probes hit these every few seconds
QUIET_PATHS = {"/health", "/api/ingest/status"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Typical durations:
        - GET /health: 1-5ms
        - GET /api/notes: 10-50ms (database query)
        - POST /api/ingest: 2000-8000ms with Gemini, ~fallback delay in demo mode
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        path = request.url.path

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        elif path in QUIET_PATHS:
            log_level = logging.DEBUG
        else:
            log_level = logging.INFO

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
