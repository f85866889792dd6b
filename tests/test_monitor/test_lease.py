"""Tests for the Redis-backed source lease."""

from unittest.mock import AsyncMock

import pytest

from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.monitor.lease import SourceLease


@pytest.fixture
def mock_redis() -> AsyncMock:
    client = AsyncMock()
    client.set = AsyncMock(return_value=True)
    client.eval = AsyncMock(return_value=1)
    return client


class TestSourceLease:
    @pytest.mark.asyncio
    async def test_acquire_uses_set_nx_px(self, mock_redis: AsyncMock) -> None:
        lease = SourceLease(mock_redis, MonitorConfig(lease_ttl_seconds=30))

        token = await lease.acquire("src_1")

        assert token
        args, kwargs = mock_redis.set.call_args
        assert args == ("pattern_tracker:lease:source:src_1", token)
        assert kwargs == {"nx": True, "px": 30_000}

    @pytest.mark.asyncio
    async def test_acquire_held_elsewhere(self, mock_redis: AsyncMock) -> None:
        mock_redis.set.return_value = None
        lease = SourceLease(mock_redis)

        assert await lease.acquire("src_1") is None

    @pytest.mark.asyncio
    async def test_release_checks_token(self, mock_redis: AsyncMock) -> None:
        lease = SourceLease(mock_redis)

        assert await lease.release("src_1", "tok") is True

        args = mock_redis.eval.call_args[0]
        assert 'redis.call("get", KEYS[1]) == ARGV[1]' in args[0]
        assert args[1:] == (1, "pattern_tracker:lease:source:src_1", "tok")

    @pytest.mark.asyncio
    async def test_release_of_foreign_lease(self, mock_redis: AsyncMock) -> None:
        mock_redis.eval.return_value = 0
        lease = SourceLease(mock_redis)
        assert await lease.release("src_1", "stale") is False
