"""
Fixed-window, in-memory rate limiting as FastAPI dependencies.

Counters are per process; a multi-worker deployment gets one window per
worker.
"""

import logging
import threading
import time
from typing import Dict, Tuple

from fastapi import Request

from config import settings
from errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Allow max_requests per window seconds for each (client ip, bucket).
    """

    def __init__(self, bucket: str, max_requests: int, window: int):
        self.bucket = bucket
        self.max_requests = max_requests
        self.window = window
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (_, start) in self._hits.items() if now - start >= self.window]
        for key in expired:
            del self._hits[key]

    def hit(self, key: str) -> bool:
        """Record one request; False when the key is over its limit."""
        now = time.monotonic()
        with self._lock:
            self._cleanup(now)
            count, start = self._hits.get(key, (0, now))
            if count >= self.max_requests:
                return False
            self._hits[key] = (count + 1, start)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def __call__(self, request: Request) -> None:
        ip = request.client.host if request.client else "unknown"
        if not self.hit(f"{ip}:{self.bucket}"):
            logger.warning(f"Rate limit exceeded: {ip} on {self.bucket}")
            raise RateLimitError("Too many requests. Please try again later.")


search_limiter = RateLimiter("search", settings.rate_limit.search, settings.rate_limit.window)
auth_limiter = RateLimiter("auth", settings.rate_limit.auth, settings.rate_limit.window)
submit_limiter = RateLimiter("submit", settings.rate_limit.submit, settings.rate_limit.window)


def search_limit(request: Request) -> None:
    """Only count requests that actually search."""
    if request.query_params.get("search") or request.query_params.get("q"):
        search_limiter(request)


def reset_all() -> None:
    for limiter in (search_limiter, auth_limiter, submit_limiter):
        limiter.reset()
