"""
asyncpg pool shared by every pattern-tracker repository.

Repositories call ``execute``/``fetch*`` for single statements and take the
connection yielded by ``transaction()`` (their ``conn`` argument) when
several writes must commit together, e.g. snapshot + reliability + queue
entry in a monitoring check.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from pattern_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

APPLICATION_NAME = "pattern-tracker"


async def _init_connection(conn: asyncpg.Connection) -> None:
    # Timestamps are compared against NOW() in SQL and datetime.now(utc) in Python
    await conn.execute("SET TIME ZONE 'UTC'")


class Database:
    """
    Connection pool for the sources, updates, queue and pattern tables.

    Usage:
        async with Database() as db:
            async with db.transaction() as conn:
                await repo.create(update, conn=conn)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self._dsn = database_url or str(settings.database_url)
        self._pool_bounds = (
            min_size or settings.db_pool_min_size,
            max_size or settings.db_pool_max_size,
        )
        self._command_timeout = settings.db_command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool. Connection errors propagate to the caller."""
        if self._pool is not None:
            return
        min_size, max_size = self._pool_bounds
        try:
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=self._command_timeout,
                init=_init_connection,
                server_settings={"application_name": APPLICATION_NAME},
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("PostgreSQL pool could not be opened: %s", e)
            raise
        logger.info("PostgreSQL pool open (%d-%d connections)", min_size, max_size)

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("PostgreSQL pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected; call connect() first")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection inside a transaction; commit on exit, roll back on error."""
        async with self._require_pool().acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run one statement and return its status string ("UPDATE 1")."""
        return await self._require_pool().execute(query, *args)

    async def executemany(self, query: str, args: list[tuple]) -> None:
        await self._require_pool().executemany(query, args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        return await self._require_pool().fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        return await self._require_pool().fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._require_pool().fetchval(query, *args)

    async def health_check(self) -> bool:
        """True when a trivial query round-trips."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (OSError, RuntimeError, asyncpg.PostgresError) as e:
            logger.warning("PostgreSQL health check failed: %s", e)
            return False


def affected_rows(status: str) -> int:
    """Row count of an asyncpg status string: "UPDATE 3" -> 3, "INSERT 0 1" -> 1."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0
