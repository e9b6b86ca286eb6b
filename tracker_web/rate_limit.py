"""Simple in-memory rate limiter gating every inbound request."""

from __future__ import annotations

import logging
import math
import time
from threading import Lock
from typing import Callable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a minute."


class RateLimiter:
    """
    In-memory rate limiter using a sliding request log.

    State is local to one process. Construct one instance at startup and hand
    it to the application; a shared-cache implementation with the same
    ``admit``/``reset`` methods can replace it for multi-instance deployments.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum number of requests allowed in the window
            window_seconds: Time window in seconds
            clock: Monotonic time source, replaceable in tests
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: dict[str, list[float]] = {}
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> list[float]:
        """Drop requests older than the window, evicting empty keys."""
        cutoff = now - self.window_seconds
        recent = [t for t in self._requests.get(key, ()) if t > cutoff]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)
        return recent

    def admit(self, key: str) -> tuple[bool, Optional[int]]:
        """
        Check if a request is allowed and record it when it is.

        Args:
            key: Unique identifier (usually IP address)

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = self._clock()

        with self._lock:
            recent = self._prune(key, now)

            if len(recent) >= self.max_requests:
                # Denied attempts are not recorded.
                retry_after = max(1, math.ceil(recent[0] + self.window_seconds - now))
                return False, retry_after

            recent.append(now)
            self._requests[key] = recent
            return True, None

    def reset(self, key: str) -> None:
        """Forget every recorded request for a key."""
        with self._lock:
            self._requests.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._requests)


def get_client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """Extract client IP from request, optionally honouring proxy headers."""
    if trust_proxy_headers:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Take the first IP in the chain (original client)
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests from clients that exceeded the limiter's budget."""

    def __init__(self, app, limiter: RateLimiter, trust_proxy_headers: bool = False):
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        client_ip = get_client_ip(request, self.trust_proxy_headers)
        allowed, retry_after = self.limiter.admit(client_ip)
        if not allowed:
            logger.info("Rate limit exceeded for %s", client_ip)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
