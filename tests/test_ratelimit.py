"""
Tests for the fixed-window rate limiter and its stores.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from cti_server.core.config import Settings
from cti_server.core.ratelimit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    build_rate_limiter,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestInMemoryStore:
    async def test_allows_up_to_limit(self):
        clock = FakeClock()
        limiter = RateLimiter(InMemoryRateLimitStore(clock), limit=5, window_seconds=900)

        for _ in range(5):
            assert (await limiter.check("register:ip:1.2.3.4")).allowed

        clock.now += 100
        denied = await limiter.check("register:ip:1.2.3.4")
        assert not denied.allowed
        assert denied.retry_after == 800

    async def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(InMemoryRateLimitStore(clock), limit=1, window_seconds=60)

        assert (await limiter.check("k")).allowed
        assert not (await limiter.check("k")).allowed
        clock.now += 60
        assert (await limiter.check("k")).allowed

    async def test_keys_are_independent(self):
        limiter = RateLimiter(InMemoryRateLimitStore(FakeClock()), limit=1, window_seconds=60)
        assert (await limiter.check("a")).allowed
        assert (await limiter.check("b")).allowed
        assert not (await limiter.check("a")).allowed

    async def test_expired_windows_are_evicted(self):
        clock = FakeClock()
        store = InMemoryRateLimitStore(clock)
        for i in range(1000):
            await store.hit(f"register:ip:10.0.{i // 256}.{i % 256}", 60)
        assert len(store) == 1000

        clock.now += 10_000
        await store.hit("register:ip:192.0.2.1", 60)
        assert len(store) == 1

    async def test_live_windows_survive_sweep(self):
        clock = FakeClock()
        store = InMemoryRateLimitStore(clock)
        await store.hit("short", 10)
        await store.hit("long", 900)

        clock.now += 60
        count, _ = await store.hit("long", 900)
        assert count == 2
        assert len(store) == 1


class TestRedisStore:
    @pytest.fixture
    def client(self):
        return AsyncMock()

    async def test_first_hit_sets_expiry(self, client):
        client.incr.return_value = 1
        store = RedisRateLimitStore(client)

        count, remaining = await store.hit("register:ip:1.2.3.4", 900)
        assert (count, remaining) == (1, 900.0)
        client.incr.assert_awaited_once_with("ratelimit:register:ip:1.2.3.4")
        client.expire.assert_awaited_once_with("ratelimit:register:ip:1.2.3.4", 900)

    async def test_over_limit_uses_ttl(self, client):
        client.incr.return_value = 6
        client.ttl.return_value = 120
        limiter = RateLimiter(RedisRateLimitStore(client), limit=5, window_seconds=900)

        result = await limiter.check("k")
        assert not result.allowed
        assert result.retry_after == 120
        client.expire.assert_not_awaited()

    async def test_missing_expiry_is_restored(self, client):
        client.incr.return_value = 3
        client.ttl.return_value = -1
        store = RedisRateLimitStore(client, prefix="rl:")

        count, remaining = await store.hit("k", 60)
        assert (count, remaining) == (3, 60.0)
        client.expire.assert_awaited_once_with("rl:k", 60)

    async def test_close(self, client):
        await RedisRateLimitStore(client).close()
        client.aclose.assert_awaited_once()


class TestBuildRateLimiter:
    def test_memory_backend(self):
        limiter = build_rate_limiter(Settings(rate_limit_backend="memory", rate_limit_requests=3))
        assert isinstance(limiter.store, InMemoryRateLimitStore)
        assert limiter.limit == 3

    def test_redis_backend(self):
        limiter = build_rate_limiter(Settings(rate_limit_backend="redis"))
        assert isinstance(limiter.store, RedisRateLimitStore)
        assert limiter.window_seconds == 900
