"""
StudySnap Backend - Ingestion Rate Limiting Middleware
========================================================

What:  Per-IP sliding window limit on POST /api/ingest.
How:   Keeps the timestamps of recent ingest requests per client IP; a request
       arriving when the window is full is answered with 429 and Retry-After.
Who:   Registered in main.create_app. Reads and status polls are never limited.

Algorithm: Sliding Window Log
    1. Drop timestamps older than the window
    2. If the remaining count >= limit, reject with 429
    3. Otherwise record the current timestamp and continue

Single-process only: the window lives in this process's memory.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from studysnap.config import settings
from studysnap.exceptions import RateLimitExceededError
from studysnap.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# (method, path) pairs that cost model quota
LIMITED_ROUTES = {("POST", "/api/ingest")}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests / window_seconds: override settings.rate_limit_requests
            and settings.rate_limit_window (tests use small values)
        clock: time source in seconds (time.monotonic by default)
    """

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)

    def _is_limited(self, request: Request) -> bool:
        path = request.url.path.rstrip("/") or "/"
        return (request.method, path) in LIMITED_ROUTES

    def check(self, client_ip: str) -> Tuple[bool, int]:
        """Record a hit for client_ip. Returns (allowed, retry_after_seconds)."""
        now = self._clock()
        window = self._requests[client_ip]
        while window and window[0] <= now - self.window_seconds:
            window.popleft()

        if len(window) >= self.max_requests:
            retry_after = int(window[0] + self.window_seconds - now) + 1
            return False, retry_after

        window.append(now)
        self._forget_idle_clients(now)
        return True, 0

    def _forget_idle_clients(self, now: float) -> None:
        idle = [
            ip for ip, window in self._requests.items()
            if not window or window[-1] <= now - self.window_seconds
        ]
        for ip in idle:
            del self._requests[ip]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._is_limited(request):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        allowed, retry_after = self.check(client_ip)
        if allowed:
            return await call_next(request)

        logger.warning(
            "Rate limit exceeded for IP %s: %d ingest requests in %ds window",
            client_ip,
            self.max_requests,
            self.window_seconds,
        )
        error = RateLimitExceededError(retry_after=retry_after)
        return JSONResponse(
            status_code=error.status_code,
            content={
                "error": error.error_code,
                "message": error.message,
                "details": {"retry_after": retry_after},
                "request_id": request_id_var.get("") or None,
            },
            headers={"Retry-After": str(retry_after)},
        )
