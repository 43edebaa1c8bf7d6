"""HTTP middleware: framing headers and per-client rate limiting."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

LOGGER = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, window_seconds: float, max_requests: int) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float | None = None) -> tuple[bool, float]:
        """Count one request; return whether it is allowed and the reset time."""
        now = time.time() if now is None else now
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = _Window(count=1, reset_at=now + self.window_seconds)
                self._windows[key] = window
                self._evict(now)
                return True, window.reset_at
            window.count += 1
            return window.count <= self.max_requests, window.reset_at

    def _evict(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]


def install_rate_limit(app: FastAPI, limiter: RateLimiter) -> None:
    @app.middleware("http")
    async def rate_limit(request: Request, call_next: CallNext) -> Response:
        client = request.client.host if request.client else "unknown"
        allowed, reset_at = limiter.hit(client)
        if not allowed:
            LOGGER.warning("Rate limit exceeded for %s", client)
            reset = datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded", "resetAt": reset},
            )
        return await call_next(request)


def install_frame_headers(app: FastAPI, frame_allowed_origins: str) -> None:
    """Allow framing only from the configured origins; deny it otherwise."""
    allowed = frame_allowed_origins.strip()

    @app.middleware("http")
    async def frame_headers(request: Request, call_next: CallNext) -> Response:
        response = await call_next(request)
        if allowed:
            response.headers["Content-Security-Policy"] = f"frame-ancestors {allowed}"
            if "X-Frame-Options" in response.headers:
                del response.headers["X-Frame-Options"]
        else:
            response.headers["X-Frame-Options"] = "DENY"
        return response
