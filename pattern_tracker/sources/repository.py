"""Database repository for the sources table."""

import json
import logging
from datetime import timedelta
from typing import Any

from pattern_tracker.sources.reliability import (
    RELIABILITY_DELTAS,
    FetchOutcome,
    clamp_reliability,
)
from pattern_tracker.sources.schemas import Source
from pattern_tracker.storage.database import Database, affected_rows

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id               TEXT PRIMARY KEY,
    url              TEXT NOT NULL,
    name             TEXT NOT NULL UNIQUE,
    category         TEXT NOT NULL DEFAULT 'general',
    check_frequency  TEXT NOT NULL DEFAULT 'DAILY',
    priority         INTEGER NOT NULL DEFAULT 0 CHECK (priority >= 0),
    active           BOOLEAN NOT NULL DEFAULT TRUE,
    reliability      DOUBLE PRECISION NOT NULL DEFAULT 0.8
                     CHECK (reliability >= 0 AND reliability <= 1),
    extract_patterns BOOLEAN NOT NULL DEFAULT TRUE,
    last_scraped     TIMESTAMPTZ,
    last_changed     TIMESTAMPTZ,
    error_count      INTEGER NOT NULL DEFAULT 0,
    last_error       TEXT,
    metadata         JSONB NOT NULL DEFAULT '{}',
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_due
    ON sources(check_frequency, last_scraped) WHERE active = TRUE;
CREATE INDEX IF NOT EXISTS idx_sources_category
    ON sources(category);
"""

_INSERT_SQL = """
INSERT INTO sources (
    id, url, name, category, check_frequency, priority,
    active, reliability, extract_patterns, metadata
) VALUES ($1, $2, $3, $4, $5, $6, $7, LEAST(1.0, GREATEST(0.0, $8::float8)), $9, $10)
RETURNING *
"""

_BULK_UPSERT_SQL = """
INSERT INTO sources (
    id, url, name, category, check_frequency, priority,
    active, reliability, extract_patterns, metadata
)
SELECT * FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::text[],
    $6::int[], $7::boolean[], $8::float8[], $9::boolean[], $10::jsonb[]
)
ON CONFLICT (name) DO UPDATE SET
    url = EXCLUDED.url,
    category = EXCLUDED.category,
    check_frequency = EXCLUDED.check_frequency,
    priority = EXCLUDED.priority,
    extract_patterns = EXCLUDED.extract_patterns,
    metadata = EXCLUDED.metadata,
    updated_at = NOW()
"""

# Feedback deltas apply to the stored value, clamped to [0, 1] and rounded
# to 6 places as in next_reliability().
_RECORD_SUCCESS_SQL = """
UPDATE sources SET
    reliability = ROUND(LEAST(1.0, GREATEST(0.0, reliability + $2::float8))::numeric, 6)::float8,
    last_scraped = NOW(),
    last_changed = CASE WHEN $3::boolean THEN NOW() ELSE last_changed END,
    error_count = 0,
    last_error = NULL,
    updated_at = NOW()
WHERE id = $1
RETURNING reliability
"""

_RECORD_FAILURE_SQL = """
UPDATE sources SET
    reliability = ROUND(LEAST(1.0, GREATEST(0.0, reliability + $2::float8))::numeric, 6)::float8,
    error_count = error_count + 1,
    last_error = $3,
    updated_at = NOW()
WHERE id = $1
RETURNING reliability
"""


def _record_to_source(record: Any) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    metadata = record["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Source(
        id=record["id"],
        url=record["url"],
        name=record["name"],
        category=record["category"],
        check_frequency=record["check_frequency"],
        priority=record["priority"],
        active=record["active"],
        reliability=record["reliability"],
        extract_patterns=record["extract_patterns"],
        last_scraped=record["last_scraped"],
        last_changed=record["last_changed"],
        error_count=record["error_count"],
        last_error=record["last_error"],
        metadata=metadata or {},
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SourcesRepository:
    """CRUD and scheduling queries for the sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Sources table ensured")

    async def create(self, source: Source) -> Source:
        """Insert a new source. Raises asyncpg.UniqueViolationError on a duplicate name."""
        row = await self._db.fetchrow(
            _INSERT_SQL,
            source.id,
            source.url,
            source.name,
            source.category,
            source.check_frequency,
            source.priority,
            source.active,
            clamp_reliability(source.reliability),
            source.extract_patterns,
            json.dumps(source.metadata),
        )
        return _record_to_source(row)

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources keyed by name.

        Existing rows keep their id, reliability and scheduling state.
        Returns the number of sources processed.
        """
        if not sources:
            return 0

        await self._db.execute(
            _BULK_UPSERT_SQL,
            [s.id for s in sources],
            [s.url for s in sources],
            [s.name for s in sources],
            [s.category for s in sources],
            [s.check_frequency for s in sources],
            [s.priority for s in sources],
            [s.active for s in sources],
            [clamp_reliability(s.reliability) for s in sources],
            [s.extract_patterns for s in sources],
            [json.dumps(s.metadata) for s in sources],
        )
        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def get(self, source_id: str) -> Source | None:
        """Fetch a single source by id."""
        row = await self._db.fetchrow("SELECT * FROM sources WHERE id = $1", source_id)
        return _record_to_source(row) if row else None

    async def get_by_name(self, name: str) -> Source | None:
        row = await self._db.fetchrow("SELECT * FROM sources WHERE name = $1", name)
        return _record_to_source(row) if row else None

    async def list_sources(
        self,
        category: str | None = None,
        search: str | None = None,
        active_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Source], int]:
        """Paginated list with filters. Returns (sources, total)."""
        conditions: list[str] = []
        params: list = []
        idx = 1

        if active_only:
            conditions.append("active = TRUE")

        if category:
            conditions.append(f"category = ${idx}")
            params.append(category)
            idx += 1

        if search:
            conditions.append(f"(name ILIKE ${idx} OR url ILIKE ${idx})")
            params.append(f"%{search}%")
            idx += 1

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""

        total = await self._db.fetchval(
            f"SELECT COUNT(*) FROM sources{where_clause}", *params
        )

        data_sql = f"""
            SELECT * FROM sources{where_clause}
            ORDER BY priority DESC, name
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(data_sql, *params)

        return [_record_to_source(r) for r in rows], total or 0

    async def list_due(
        self, frequency: str, interval: timedelta, limit: int
    ) -> list[Source]:
        """Active sources of a tier not scraped within ``interval``.

        Never-scraped sources come first, then the stalest; higher
        priority breaks ties.
        """
        rows = await self._db.fetch(
            """
            SELECT * FROM sources
            WHERE active = TRUE
              AND check_frequency = $1
              AND (last_scraped IS NULL OR last_scraped < NOW() - $2::interval)
            ORDER BY last_scraped ASC NULLS FIRST, priority DESC, name
            LIMIT $3
            """,
            frequency, interval, limit,
        )
        return [_record_to_source(r) for r in rows]

    async def list_stale(self, older_than: timedelta, limit: int) -> list[Source]:
        """Active sources of any tier not scraped within ``older_than``."""
        rows = await self._db.fetch(
            """
            SELECT * FROM sources
            WHERE active = TRUE
              AND (last_scraped IS NULL OR last_scraped < NOW() - $1::interval)
            ORDER BY last_scraped ASC NULLS FIRST, priority DESC, name
            LIMIT $2
            """,
            older_than, limit,
        )
        return [_record_to_source(r) for r in rows]

    async def list_active(self, limit: int) -> list[Source]:
        rows = await self._db.fetch(
            """
            SELECT * FROM sources
            WHERE active = TRUE
            ORDER BY priority DESC, last_scraped ASC NULLS FIRST, name
            LIMIT $1
            """,
            limit,
        )
        return [_record_to_source(r) for r in rows]

    async def get_active_by_ids(self, source_ids: list[str], limit: int) -> list[Source]:
        """Fetch the active subset of the given ids."""
        if not source_ids:
            return []
        rows = await self._db.fetch(
            """
            SELECT * FROM sources
            WHERE id = ANY($1::text[]) AND active = TRUE
            ORDER BY priority DESC, name
            LIMIT $2
            """,
            source_ids, limit,
        )
        return [_record_to_source(r) for r in rows]

    async def get_many(self, source_ids: list[str]) -> dict[str, Source]:
        """Sources keyed by id, active or not (export lookups)."""
        if not source_ids:
            return {}
        rows = await self._db.fetch(
            "SELECT * FROM sources WHERE id = ANY($1::text[])", source_ids
        )
        sources = [_record_to_source(r) for r in rows]
        return {s.id: s for s in sources}

    async def record_success(
        self,
        source_id: str,
        changed: bool,
        conn: Any = None,
    ) -> float | None:
        """Stamp a successful fetch and apply its feedback delta.

        Returns the stored reliability, or None if the source row is gone.
        """
        outcome = FetchOutcome.CHANGED if changed else FetchOutcome.UNCHANGED
        executor = conn or self._db
        return await executor.fetchval(
            _RECORD_SUCCESS_SQL,
            source_id,
            RELIABILITY_DELTAS[outcome],
            changed,
        )

    async def record_failure(self, source_id: str, error: str) -> float | None:
        """Count a failed fetch and apply the failure delta."""
        return await self._db.fetchval(
            _RECORD_FAILURE_SQL,
            source_id,
            RELIABILITY_DELTAS[FetchOutcome.FAILED],
            error[:1000],
        )

    async def deactivate(self, source_id: str) -> bool:
        """Soft-deactivate a source. Returns True if a row was updated."""
        result = await self._db.execute(
            """
            UPDATE sources SET active = FALSE, updated_at = NOW()
            WHERE id = $1 AND active = TRUE
            """,
            source_id,
        )
        return affected_rows(result) == 1

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM sources")
