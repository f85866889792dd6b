"""Update store: append-only log of per-source snapshots."""

import json
import logging
from typing import Any

from pattern_tracker.storage.database import Database, affected_rows
from pattern_tracker.updates.schemas import Update

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS updates (
    id             TEXT PRIMARY KEY,
    source_id      TEXT NOT NULL REFERENCES sources(id),
    content        JSONB NOT NULL,
    content_hash   TEXT NOT NULL,
    changed        BOOLEAN NOT NULL,
    change_type    TEXT,
    processed      BOOLEAN NOT NULL DEFAULT FALSE,
    patterns_found INTEGER NOT NULL DEFAULT 0,
    scraped_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    processed_at   TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_updates_source_scraped
    ON updates(source_id, scraped_at DESC);
CREATE INDEX IF NOT EXISTS idx_updates_unprocessed
    ON updates(scraped_at) WHERE processed = FALSE;
"""


def _row_to_update(row: Any) -> Update:
    """Convert an asyncpg Record to an Update."""
    content = row["content"]
    if isinstance(content, str):
        content = json.loads(content)
    return Update(
        id=row["id"],
        source_id=row["source_id"],
        content=content,
        content_hash=row["content_hash"],
        changed=row["changed"],
        change_type=row["change_type"],
        processed=row["processed"],
        patterns_found=row["patterns_found"],
        scraped_at=row["scraped_at"],
        processed_at=row["processed_at"],
    )


class UpdatesRepository:
    """Repository for the append-only updates table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the updates table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Updates table ensured")

    async def create(self, update: Update, conn: Any = None) -> Update:
        """Append a snapshot."""
        executor = conn or self._db
        row = await executor.fetchrow(
            """
            INSERT INTO updates (
                id, source_id, content, content_hash, changed,
                change_type, scraped_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            update.id,
            update.source_id,
            json.dumps(update.content),
            update.content_hash,
            update.changed,
            update.change_type,
            update.scraped_at,
        )
        return _row_to_update(row)

    async def get(self, update_id: str) -> Update | None:
        row = await self._db.fetchrow("SELECT * FROM updates WHERE id = $1", update_id)
        return _row_to_update(row) if row else None

    async def get_latest(self, source_id: str, conn: Any = None) -> Update | None:
        """Most recent snapshot of a source, or None on cold start."""
        executor = conn or self._db
        row = await executor.fetchrow(
            """
            SELECT * FROM updates
            WHERE source_id = $1
            ORDER BY scraped_at DESC, id DESC
            LIMIT 1
            """,
            source_id,
        )
        return _row_to_update(row) if row else None

    async def list_by_source(
        self, source_id: str, *, limit: int = 20, offset: int = 0
    ) -> list[Update]:
        """Snapshot history of a source, newest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM updates
            WHERE source_id = $1
            ORDER BY scraped_at DESC
            LIMIT $2 OFFSET $3
            """,
            source_id, limit, offset,
        )
        return [_row_to_update(r) for r in rows]

    async def mark_processed(
        self, update_id: str, patterns_found: int, conn: Any = None
    ) -> bool:
        """Flip ``processed`` to True.

        Guarded by ``processed = FALSE`` so the flag moves at most once.
        Returns True if this call performed the transition.
        """
        executor = conn or self._db
        result = await executor.execute(
            """
            UPDATE updates
            SET processed = TRUE, processed_at = NOW(), patterns_found = $2
            WHERE id = $1 AND processed = FALSE
            """,
            update_id, patterns_found,
        )
        return affected_rows(result) == 1

    async def add_patterns_found(
        self, update_id: str, count: int, conn: Any = None
    ) -> None:
        """Bump the pattern count of an already processed update (forced re-extraction)."""
        executor = conn or self._db
        await executor.execute(
            "UPDATE updates SET patterns_found = patterns_found + $2 WHERE id = $1",
            update_id, count,
        )

    async def count_unprocessed(self) -> int:
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM updates WHERE processed = FALSE AND changed = TRUE"
        )
