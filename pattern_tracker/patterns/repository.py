"""Pattern store: patterns and their append-only review log.

Deleting a pattern cascades its reviews and usage events.
"""

import json
import logging
from datetime import datetime
from typing import Any

from pattern_tracker.patterns.schemas import Pattern, PatternFilter, Review
from pattern_tracker.storage.database import Database, affected_rows

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS patterns (
    id           TEXT PRIMARY KEY,
    source_id    TEXT NOT NULL REFERENCES sources(id),
    update_id    TEXT REFERENCES updates(id) ON DELETE SET NULL,
    name         TEXT NOT NULL,
    description  TEXT NOT NULL DEFAULT '',
    category     TEXT NOT NULL DEFAULT 'OTHER',
    confidence   DOUBLE PRECISION NOT NULL DEFAULT 0.5
                 CHECK (confidence >= 0 AND confidence <= 1),
    relevance    DOUBLE PRECISION NOT NULL DEFAULT 0.5
                 CHECK (relevance >= 0 AND relevance <= 1),
    status       TEXT NOT NULL DEFAULT 'PENDING',
    metadata     JSONB NOT NULL DEFAULT '{}',
    extracted_by TEXT NOT NULL DEFAULT 'ai',
    extracted_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    approved_at  TIMESTAMPTZ,
    approved_by  TEXT,
    usage_count  INTEGER NOT NULL DEFAULT 0,
    last_used_at TIMESTAMPTZ,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_patterns_status_category
    ON patterns(status, category);
CREATE INDEX IF NOT EXISTS idx_patterns_source
    ON patterns(source_id);
CREATE INDEX IF NOT EXISTS idx_patterns_update
    ON patterns(update_id);

CREATE TABLE IF NOT EXISTS pattern_reviews (
    id          TEXT PRIMARY KEY,
    seq         BIGSERIAL,
    pattern_id  TEXT NOT NULL REFERENCES patterns(id) ON DELETE CASCADE,
    reviewer_id TEXT NOT NULL,
    action      TEXT NOT NULL,
    feedback    TEXT,
    metadata    JSONB NOT NULL DEFAULT '{}',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_pattern_reviews_pattern
    ON pattern_reviews(pattern_id, seq);
"""

_INSERT_PATTERN_SQL = """
INSERT INTO patterns (
    id, source_id, update_id, name, description, category,
    confidence, relevance, status, metadata, extracted_by, extracted_at
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
"""


def _row_to_pattern(row: Any) -> Pattern:
    """Convert an asyncpg Record to a Pattern."""
    metadata = row["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Pattern(
        id=row["id"],
        source_id=row["source_id"],
        update_id=row["update_id"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        confidence=row["confidence"],
        relevance=row["relevance"],
        status=row["status"],
        metadata=metadata or {},
        extracted_by=row["extracted_by"],
        extracted_at=row["extracted_at"],
        approved_at=row["approved_at"],
        approved_by=row["approved_by"],
        usage_count=row["usage_count"],
        last_used_at=row["last_used_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_review(row: Any) -> Review:
    metadata = row["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Review(
        id=row["id"],
        pattern_id=row["pattern_id"],
        reviewer_id=row["reviewer_id"],
        action=row["action"],
        feedback=row["feedback"],
        metadata=metadata or {},
        created_at=row["created_at"],
        seq=row["seq"],
    )


def build_filter_clause(
    flt: PatternFilter, start_idx: int = 1
) -> tuple[str, list[Any], int]:
    """Build a WHERE clause for a PatternFilter.

    Returns (where_clause, params, next_param_index).
    """
    conditions: list[str] = []
    params: list[Any] = []
    idx = start_idx

    if flt.status:
        conditions.append(f"status = ${idx}")
        params.append(flt.status)
        idx += 1

    if flt.category:
        conditions.append(f"category = ${idx}")
        params.append(flt.category)
        idx += 1

    if flt.source_id:
        conditions.append(f"source_id = ${idx}")
        params.append(flt.source_id)
        idx += 1

    if flt.pattern_ids:
        conditions.append(f"id = ANY(${idx}::text[])")
        params.append(list(flt.pattern_ids))
        idx += 1

    if flt.min_confidence is not None:
        conditions.append(f"confidence >= ${idx}")
        params.append(flt.min_confidence)
        idx += 1

    if flt.min_relevance is not None:
        conditions.append(f"relevance >= ${idx}")
        params.append(flt.min_relevance)
        idx += 1

    if flt.date_from is not None:
        conditions.append(f"extracted_at >= ${idx}")
        params.append(flt.date_from)
        idx += 1

    if flt.date_to is not None:
        conditions.append(f"extracted_at <= ${idx}")
        params.append(flt.date_to)
        idx += 1

    if flt.search:
        conditions.append(f"(name ILIKE ${idx} OR description ILIKE ${idx})")
        params.append(f"%{flt.search}%")
        idx += 1

    where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
    return where_clause, params, idx


class PatternRepository:
    """Persistence for patterns."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the patterns and pattern_reviews tables (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Pattern tables ensured")

    async def create_many(self, patterns: list[Pattern], conn: Any = None) -> int:
        """Insert candidate patterns. Returns the number inserted."""
        if not patterns:
            return 0
        executor = conn or self._db
        await executor.executemany(
            _INSERT_PATTERN_SQL,
            [
                (
                    p.id,
                    p.source_id,
                    p.update_id,
                    p.name,
                    p.description,
                    p.category,
                    p.confidence,
                    p.relevance,
                    p.status,
                    json.dumps(p.metadata),
                    p.extracted_by,
                    p.extracted_at,
                )
                for p in patterns
            ],
        )
        return len(patterns)

    async def get(self, pattern_id: str, conn: Any = None) -> Pattern | None:
        executor = conn or self._db
        row = await executor.fetchrow("SELECT * FROM patterns WHERE id = $1", pattern_id)
        return _row_to_pattern(row) if row else None

    async def lock(self, pattern_id: str, conn: Any) -> Pattern | None:
        """Fetch a pattern with a row lock held for the current transaction."""
        row = await conn.fetchrow(
            "SELECT * FROM patterns WHERE id = $1 FOR UPDATE", pattern_id
        )
        return _row_to_pattern(row) if row else None

    async def list_patterns(self, flt: PatternFilter) -> tuple[list[Pattern], int]:
        """Filtered, paginated listing (newest first). Returns (patterns, total)."""
        where_clause, params, idx = build_filter_clause(flt)

        total = await self._db.fetchval(
            f"SELECT COUNT(*) FROM patterns{where_clause}", *params
        )

        sql = f"""
            SELECT * FROM patterns{where_clause}
            ORDER BY extracted_at DESC, id
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        rows = await self._db.fetch(sql, *params, flt.limit, flt.offset)
        return [_row_to_pattern(r) for r in rows], total or 0

    async def list_for_export(self, flt: PatternFilter) -> list[Pattern]:
        """All patterns matching a filter, in export order (no pagination)."""
        where_clause, params, _ = build_filter_clause(flt)
        rows = await self._db.fetch(
            f"""
            SELECT * FROM patterns{where_clause}
            ORDER BY category ASC, relevance DESC, confidence DESC, id
            """,
            *params,
        )
        return [_row_to_pattern(r) for r in rows]

    async def apply_review_state(
        self,
        pattern_id: str,
        status: str,
        approved_at: datetime | None,
        approved_by: str | None,
        conn: Any = None,
    ) -> Pattern:
        """Write the state folded from the review log onto the pattern."""
        executor = conn or self._db
        row = await executor.fetchrow(
            """
            UPDATE patterns
            SET status = $2, approved_at = $3, approved_by = $4, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            pattern_id, status, approved_at, approved_by,
        )
        return _row_to_pattern(row)

    async def delete(self, pattern_id: str) -> bool:
        """Hard-delete a pattern together with its reviews and usage."""
        result = await self._db.execute("DELETE FROM patterns WHERE id = $1", pattern_id)
        return affected_rows(result) == 1

    async def count_by_status(self) -> dict[str, int]:
        rows = await self._db.fetch(
            "SELECT status, COUNT(*) AS count FROM patterns GROUP BY status"
        )
        return {row["status"]: row["count"] for row in rows}


class ReviewRepository:
    """Append-only access to pattern_reviews."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def append(self, review: Review, conn: Any = None) -> Review:
        executor = conn or self._db
        row = await executor.fetchrow(
            """
            INSERT INTO pattern_reviews (
                id, pattern_id, reviewer_id, action, feedback, metadata, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            review.id,
            review.pattern_id,
            review.reviewer_id,
            review.action,
            review.feedback,
            json.dumps(review.metadata),
            review.created_at,
        )
        return _row_to_review(row)

    async def list_ordered(self, pattern_id: str, conn: Any = None) -> list[Review]:
        """Reviews of a pattern in the order they were appended."""
        executor = conn or self._db
        rows = await executor.fetch(
            "SELECT * FROM pattern_reviews WHERE pattern_id = $1 ORDER BY seq ASC",
            pattern_id,
        )
        return [_row_to_review(r) for r in rows]

    async def history(
        self, pattern_id: str, *, limit: int = 50, offset: int = 0
    ) -> list[Review]:
        """Reviews of a pattern, newest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM pattern_reviews
            WHERE pattern_id = $1
            ORDER BY seq DESC
            LIMIT $2 OFFSET $3
            """,
            pattern_id, limit, offset,
        )
        return [_row_to_review(r) for r in rows]
