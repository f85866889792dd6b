"""
Single-writer lease per source, backed by Redis.

A run acquires ``SET key token NX PX ttl`` before touching a source and
releases it only if the stored token is still its own, so an expired
lease taken over by another run is never deleted by the original holder.
"""

import logging
import uuid

import redis.asyncio as redis

from pattern_tracker.config.settings import get_settings
from pattern_tracker.monitor.config import MonitorConfig

logger = logging.getLogger(__name__)

# Delete only when the caller still owns the key
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class SourceLease:
    """Redis-backed per-source lease.

    Usage:
        lease = SourceLease(redis_client)
        token = await lease.acquire("src_abc")
        if token:
            try:
                ...
            finally:
                await lease.release("src_abc", token)
    """

    def __init__(
        self,
        client: redis.Redis,
        config: MonitorConfig | None = None,
    ) -> None:
        self._redis = client
        self._config = config or MonitorConfig()

    @classmethod
    def from_settings(cls, config: MonitorConfig | None = None) -> "SourceLease":
        settings = get_settings()
        client = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )
        return cls(client, config)

    def _key(self, source_id: str) -> str:
        return f"{self._config.lease_key_prefix}{source_id}"

    async def acquire(self, source_id: str) -> str | None:
        """Try to take the lease. Returns a token, or None if held elsewhere."""
        token = uuid.uuid4().hex
        acquired = await self._redis.set(
            self._key(source_id),
            token,
            nx=True,
            px=self._config.lease_ttl_seconds * 1000,
        )
        if not acquired:
            logger.debug("Lease for source %s held by another run", source_id)
            return None
        return token

    async def release(self, source_id: str, token: str) -> bool:
        """Release the lease if ``token`` still owns it."""
        released = await self._redis.eval(_RELEASE_SCRIPT, 1, self._key(source_id), token)
        return bool(released)

    async def ping(self) -> bool:
        return await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()
