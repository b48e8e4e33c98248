from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from time import time
from typing import Protocol
from uuid import uuid4

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)


class RateLimiter(Protocol):
    async def allow(self, key: str) -> bool:
        ...


@dataclass
class InMemoryRateLimiter:
    """Sliding-window rate limiter (per process).

    Note: In multi-worker deployments, each worker maintains its own limiter state.
    Use RedisRateLimiter for global rate limiting across workers.
    """

    max_requests: int
    window_seconds: int

    def __post_init__(self) -> None:
        """Initialize rate limiter state."""
        self._lock = asyncio.Lock()
        self._requests: dict[str, deque[float]] = {}
        self._last_seen: dict[str, float] = {}
        self._inactive_ttl = self.window_seconds * 2

    async def allow(self, key: str) -> bool:
        now = time()
        cutoff = now - self.window_seconds
        async with self._lock:
            self._cleanup(now)
            bucket = self._requests.setdefault(key, deque())
            while bucket and bucket[0] < cutoff:
                bucket.popleft()
            if len(bucket) >= self.max_requests:
                return False
            bucket.append(now)
            self._last_seen[key] = now
            return True

    def _cleanup(self, now: float) -> None:
        stale_before = now - self._inactive_ttl
        for key, last_seen in list(self._last_seen.items()):
            if last_seen < stale_before:
                self._last_seen.pop(key, None)
                self._requests.pop(key, None)


@dataclass
class RedisRateLimiter:
    """Sliding-window rate limiter backed by a Redis sorted set per key."""

    client: redis.Redis
    max_requests: int
    window_seconds: int
    key_prefix: str = "receptionist:ratelimit"

    async def allow(self, key: str) -> bool:
        now = time()
        rate_key = f"{self.key_prefix}:{key}"
        pipeline = self.client.pipeline()
        pipeline.zremrangebyscore(rate_key, 0, now - self.window_seconds)
        pipeline.zcard(rate_key)
        _, current = await pipeline.execute()
        if int(current) >= self.max_requests:
            return False

        pipeline = self.client.pipeline()
        pipeline.zadd(rate_key, {str(uuid4()): now})
        pipeline.expire(rate_key, self.window_seconds)
        await pipeline.execute()
        return True


async def close_redis(client: redis.Redis) -> None:
    """Close a Redis client created for rate limiting."""
    try:
        await client.aclose()
    except redis.RedisError as exc:
        logger.warning("redis_close_failed", error=str(exc))
