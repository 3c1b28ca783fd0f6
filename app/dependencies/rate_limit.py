"""
In-process fixed-window rate limiting, applied per client IP.

Each app instance keeps its own counters on `app.state.rate_limiter`; behind several
workers the effective limit is per worker.
"""
import threading
import time
from typing import Dict, Tuple

from fastapi import Request

from app.core import config
from app.core.errors import RateLimited


class RateLimiter:
    def __init__(self, sweep_interval: float = 60.0):
        # identifier -> (count, window_start, window_seconds)
        self._hits: Dict[str, Tuple[int, float, int]] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._last_sweep = time.monotonic()

    def _sweep(self, now: float) -> None:
        """Drop counters whose window has ended; caller holds the lock."""
        expired = [key for key, (_, started, window) in self._hits.items() if now - started >= window]
        for key in expired:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, identifier: str, limit: int, window: int) -> Tuple[int, int]:
        """
        Returns (remaining_requests, reset_in_seconds)
        """
        now = time.monotonic()
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            count, started, _ = self._hits.get(identifier, (0, now, window))
            if now - started >= window:
                count, started = 0, now
            count += 1
            self._hits[identifier] = (count, started, window)
        reset_in = max(int(window - (now - started)), 1)

        if count > limit:
            raise RateLimited(headers={"Retry-After": str(reset_in)})
        return limit - count, reset_in

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _limit(request: Request, scope: str, limit: int, window: int, message: str) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    try:
        limiter.hit(f"{scope}:{_client_ip(request)}", limit, window)
    except RateLimited as e:
        raise RateLimited(message, headers=e.headers)


def global_rate_limit(request: Request) -> None:
    limit, window = config.GLOBAL_RATE_LIMIT
    _limit(request, "global", limit, window, "Too many requests from this IP, please try again later.")


def checkout_rate_limit(request: Request) -> None:
    limit, window = config.CHECKOUT_RATE_LIMIT
    _limit(request, "checkout", limit, window, "Too many payment requests, please try again later.")
