"""
In-process fixed-window rate limiter keyed by client IP.
"""
import math
import threading
import time
from dataclasses import dataclass

from fastapi import Request

from familytree.errors import ApiError


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after_seconds: int


class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: int, key_prefix: str):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitResult:
        key = f"{self.key_prefix}:{identifier}"
        now = time.monotonic()

        with self._lock:
            self._purge(now)
            count, reset_at = self._entries.get(key, (0, now + self.window_seconds))

            if count >= self.max_requests:
                return RateLimitResult(False, 0, reset_at, max(1, math.ceil(reset_at - now)))

            count += 1
            self._entries[key] = (count, reset_at)
            return RateLimitResult(True, self.max_requests - count, reset_at, 0)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._entries.items() if now >= reset_at]
        for k in expired:
            del self._entries[k]


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def enforce(limiter: RateLimiter, request: Request) -> None:
    result = limiter.check(client_ip(request))
    if not result.allowed:
        raise ApiError(
            429,
            "Too many requests. Please try again later.",
            "طلبات كثيرة جداً، يرجى المحاولة لاحقاً",
            retryAfter=result.retry_after_seconds,
            headers={"Retry-After": str(result.retry_after_seconds)},
        )
