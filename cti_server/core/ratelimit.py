"""
Fixed-window rate limiting.

Handlers never touch counters directly: ``RateLimiter.check(key)`` is the
only entry point, and routes reach the limiter through the ``rate_limit``
dependency. Counters are best-effort: the in-memory store is process
local, the Redis store is shared between instances.

Usage:
    limiter = RateLimiter(InMemoryRateLimitStore(), limit=5, window_seconds=900)
    result = await limiter.check("register:203.0.113.7")
    if not result.allowed:
        ...  # result.retry_after seconds
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import redis.asyncio as redis
import structlog
from fastapi import Request

from cti_server.core.config import Settings, get_settings
from cti_server.core.errors import RateLimited

log = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: int = 0


class RateLimitStore(Protocol):
    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        """Count one request; return (count in window, seconds until reset)."""

    async def close(self) -> None: ...


class InMemoryRateLimitStore:
    """Process-local counters for single-instance deployments.

    Expired windows are swept at most once per window length, so keys seen
    once do not accumulate for the life of the process.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
            self._next_sweep = now + window_seconds
        count, reset_at = self._windows.get(key, (0, 0.0))
        if now >= reset_at:
            count, reset_at = 0, now + window_seconds
        count += 1
        self._windows[key] = (count, reset_at)
        return count, reset_at - now

    async def close(self) -> None:
        self._windows.clear()


class RedisRateLimitStore:
    """Counters shared by every instance through Redis INCR/EXPIRE."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit:"):
        self._client = client
        self._prefix = prefix

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        redis_key = f"{self._prefix}{key}"
        count = await self._client.incr(redis_key)
        if count == 1:
            await self._client.expire(redis_key, window_seconds)
            return count, float(window_seconds)
        ttl = await self._client.ttl(redis_key)
        if ttl < 0:
            # Key lost its expiry (e.g. crash between INCR and EXPIRE)
            await self._client.expire(redis_key, window_seconds)
            ttl = window_seconds
        return count, float(ttl)

    async def close(self) -> None:
        await self._client.aclose()


class RateLimiter:
    def __init__(self, store: RateLimitStore, limit: int, window_seconds: int):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds

    async def check(self, key: str) -> RateLimitResult:
        count, remaining = await self.store.hit(key, self.window_seconds)
        if count > self.limit:
            return RateLimitResult(False, max(1, math.ceil(remaining)))
        return RateLimitResult(True)


def build_rate_limiter(settings: Optional[Settings] = None) -> RateLimiter:
    settings = settings or get_settings()
    if settings.rate_limit_backend == "redis":
        store: RateLimitStore = RedisRateLimitStore(
            redis.from_url(settings.redis_url, decode_responses=True)
        )
    else:
        store = InMemoryRateLimitStore()
    return RateLimiter(store, settings.rate_limit_requests, settings.rate_limit_window_seconds)


def _client_key(request: Request) -> str:
    auth = getattr(request.state, "caller", None)
    if auth is not None:
        return f"user:{auth.user_id}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def rate_limit(bucket: str):
    """Dependency factory: 429 once the caller exhausts ``bucket``'s window."""

    async def _dependency(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        key = f"{bucket}:{_client_key(request)}"
        result = await limiter.check(key)
        if not result.allowed:
            log.info("ratelimit.exceeded", bucket=bucket, key=key, retry_after=result.retry_after)
            raise RateLimited(
                result.retry_after,
                f"Too many requests; retry in {result.retry_after} seconds",
            )

    return _dependency
