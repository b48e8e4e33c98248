from unittest.mock import AsyncMock, MagicMock

import pytest

from receptionist_rag_backend import rate_limit
from receptionist_rag_backend.rate_limit import InMemoryRateLimiter, RedisRateLimiter


@pytest.mark.asyncio
async def test_in_memory_limiter_blocks_after_limit() -> None:
    limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)

    assert await limiter.allow("ip:127.0.0.1") is True
    assert await limiter.allow("ip:127.0.0.1") is True
    assert await limiter.allow("ip:127.0.0.1") is False
    assert await limiter.allow("ip:10.0.0.2") is True


@pytest.mark.asyncio
async def test_in_memory_limiter_window_slides(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr(rate_limit, "time", lambda: now[0])
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

    assert await limiter.allow("ip:127.0.0.1") is True
    assert await limiter.allow("ip:127.0.0.1") is False
    now[0] += 61
    assert await limiter.allow("ip:127.0.0.1") is True


def _pipeline(results):
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=results)
    return pipeline


@pytest.mark.asyncio
async def test_redis_limiter_records_request_under_limit() -> None:
    check = _pipeline([0, 1])
    record = _pipeline([1, True])
    client = MagicMock()
    client.pipeline = MagicMock(side_effect=[check, record])
    limiter = RedisRateLimiter(client=client, max_requests=2, window_seconds=60)

    assert await limiter.allow("ip:127.0.0.1") is True
    record.zadd.assert_called_once()
    record.expire.assert_called_once_with("receptionist:ratelimit:ip:127.0.0.1", 60)


@pytest.mark.asyncio
async def test_redis_limiter_blocks_at_limit() -> None:
    check = _pipeline([0, 2])
    client = MagicMock()
    client.pipeline = MagicMock(return_value=check)
    limiter = RedisRateLimiter(client=client, max_requests=2, window_seconds=60)

    assert await limiter.allow("ip:127.0.0.1") is False
    assert client.pipeline.call_count == 1
