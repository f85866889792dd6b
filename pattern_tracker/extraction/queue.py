"""
Durable extraction queue backed by PostgreSQL.

One row per update awaiting extraction. Ordering is strict priority
(highest first) with FIFO tie-breaking on a monotonic sequence.

Dequeue marks ownership in the same statement that selects the row
(``FOR UPDATE SKIP LOCKED``), so any number of workers can drain the
queue concurrently without processing an entry twice. A claim that is
never completed expires after ``claim_ttl_seconds`` and becomes
eligible again.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pattern_tracker.extraction.config import ExtractionConfig
from pattern_tracker.storage.database import Database, affected_rows

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS extraction_queue (
    update_id   TEXT PRIMARY KEY REFERENCES updates(id) ON DELETE CASCADE,
    source_id   TEXT NOT NULL REFERENCES sources(id),
    priority    INTEGER NOT NULL DEFAULT 0,
    status      TEXT NOT NULL DEFAULT 'PENDING',
    seq         BIGSERIAL,
    attempts    INTEGER NOT NULL DEFAULT 0,
    last_error  TEXT,
    enqueued_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    claimed_at  TIMESTAMPTZ,
    claimed_by  TEXT
);

CREATE INDEX IF NOT EXISTS idx_extraction_queue_order
    ON extraction_queue(priority DESC, seq ASC);
"""

# Rows a worker may take: pending, or claimed by a worker that went away.
_CLAIMABLE = """
    (status = 'PENDING'
     OR (status = 'CLAIMED' AND claimed_at < NOW() - make_interval(secs => $2)))
"""

_DEQUEUE_SQL = f"""
UPDATE extraction_queue
SET status = 'CLAIMED', claimed_at = NOW(), claimed_by = $1, attempts = attempts + 1
WHERE update_id = (
    SELECT update_id FROM extraction_queue
    WHERE {_CLAIMABLE}
    ORDER BY priority DESC, seq ASC
    LIMIT 1
    FOR UPDATE SKIP LOCKED
)
RETURNING *
"""

_CLAIM_SQL = f"""
UPDATE extraction_queue
SET status = 'CLAIMED', claimed_at = NOW(), claimed_by = $1, attempts = attempts + 1
WHERE update_id = $3 AND {_CLAIMABLE}
RETURNING *
"""


@dataclass
class QueueEntry:
    """A live queue row."""

    update_id: str
    source_id: str
    priority: int = 0
    status: str = "PENDING"
    seq: int | None = None
    attempts: int = 0
    last_error: str | None = None
    enqueued_at: datetime | None = None
    claimed_at: datetime | None = None
    claimed_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "update_id": self.update_id,
            "source_id": self.source_id,
            "priority": self.priority,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "enqueued_at": self.enqueued_at.isoformat() if self.enqueued_at else None,
            "claimed_by": self.claimed_by,
        }


def _row_to_entry(row: Any) -> QueueEntry:
    return QueueEntry(
        update_id=row["update_id"],
        source_id=row["source_id"],
        priority=row["priority"],
        status=row["status"],
        seq=row["seq"],
        attempts=row["attempts"],
        last_error=row["last_error"],
        enqueued_at=row["enqueued_at"],
        claimed_at=row["claimed_at"],
        claimed_by=row["claimed_by"],
    )


class ExtractionQueue:
    """Priority queue of updates awaiting extraction."""

    def __init__(
        self,
        database: Database,
        config: ExtractionConfig | None = None,
    ) -> None:
        self._db = database
        self._config = config or ExtractionConfig()

    async def create_table(self) -> None:
        """Create the extraction_queue table (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Extraction queue table ensured")

    async def enqueue(
        self,
        source_id: str,
        update_id: str,
        priority: int = 0,
        conn: Any = None,
    ) -> bool:
        """Add an update to the queue.

        Idempotent per update_id. Returns True if a new entry was created,
        False if one already existed.
        """
        executor = conn or self._db
        result = await executor.execute(
            """
            INSERT INTO extraction_queue (update_id, source_id, priority)
            VALUES ($1, $2, $3)
            ON CONFLICT (update_id) DO NOTHING
            """,
            update_id, source_id, priority,
        )
        created = affected_rows(result) == 1
        if created:
            logger.debug("Enqueued update %s (priority %d)", update_id, priority)
        return created

    async def dequeue_next(self, worker_id: str) -> QueueEntry | None:
        """Atomically claim the highest-priority, oldest claimable entry."""
        row = await self._db.fetchrow(
            _DEQUEUE_SQL, worker_id, float(self._config.claim_ttl_seconds)
        )
        return _row_to_entry(row) if row else None

    async def claim(self, update_id: str, worker_id: str) -> QueueEntry | None:
        """Claim one specific entry. Returns None if it is gone or owned elsewhere."""
        row = await self._db.fetchrow(
            _CLAIM_SQL, worker_id, float(self._config.claim_ttl_seconds), update_id
        )
        return _row_to_entry(row) if row else None

    async def release(self, update_id: str, error: str | None = None) -> bool:
        """Return a claimed entry to PENDING after a failed attempt."""
        result = await self._db.execute(
            """
            UPDATE extraction_queue
            SET status = 'PENDING', claimed_at = NULL, claimed_by = NULL,
                last_error = $2
            WHERE update_id = $1
            """,
            update_id, error[:1000] if error else None,
        )
        return affected_rows(result) == 1

    async def remove(self, update_id: str, conn: Any = None) -> bool:
        """Delete an entry once its extraction completed or was skipped."""
        executor = conn or self._db
        result = await executor.execute(
            "DELETE FROM extraction_queue WHERE update_id = $1", update_id
        )
        return affected_rows(result) == 1

    async def get(self, update_id: str) -> QueueEntry | None:
        row = await self._db.fetchrow(
            "SELECT * FROM extraction_queue WHERE update_id = $1", update_id
        )
        return _row_to_entry(row) if row else None

    async def depth(self) -> int:
        """Number of live entries (pending or claimed)."""
        return await self._db.fetchval("SELECT COUNT(*) FROM extraction_queue")

    async def list_pending(self, limit: int = 50) -> list[QueueEntry]:
        """Live entries in dequeue order."""
        rows = await self._db.fetch(
            """
            SELECT * FROM extraction_queue
            ORDER BY priority DESC, seq ASC
            LIMIT $1
            """,
            limit,
        )
        return [_row_to_entry(r) for r in rows]
