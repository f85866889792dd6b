"""Usage tracker.

The ``pattern_usage`` table is the authoritative log. The cached
``usage_count`` / ``last_used_at`` columns on patterns are recomputed
from it after every write, never incremented in place.
"""

import json
import logging
from datetime import datetime
from typing import Any

from pattern_tracker.errors import NotFoundError, ValidationError
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.patterns.schemas import UsageEvent
from pattern_tracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS pattern_usage (
    id         TEXT PRIMARY KEY,
    pattern_id TEXT NOT NULL REFERENCES patterns(id) ON DELETE CASCADE,
    user_id    TEXT,
    action     TEXT NOT NULL,
    context    JSONB NOT NULL DEFAULT '{}',
    session_id TEXT,
    project_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_pattern_usage_pattern
    ON pattern_usage(pattern_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_pattern_usage_action
    ON pattern_usage(action, created_at);
"""

_INSERT_SQL = """
INSERT INTO pattern_usage (
    id, pattern_id, user_id, action, context, session_id, project_id, created_at
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
"""

# Recompute cached counters from the log for the given patterns
_RECONCILE_SQL = """
UPDATE patterns p SET
    usage_count = COALESCE(u.count, 0),
    last_used_at = u.last_used_at
FROM (
    SELECT ids.id AS pattern_id, COUNT(pu.id) AS count, MAX(pu.created_at) AS last_used_at
    FROM unnest($1::text[]) AS ids(id)
    LEFT JOIN pattern_usage pu ON pu.pattern_id = ids.id
    GROUP BY ids.id
) u
WHERE p.id = u.pattern_id
"""


def _row_to_event(row: Any) -> UsageEvent:
    context = row["context"]
    if isinstance(context, str):
        context = json.loads(context)
    return UsageEvent(
        id=row["id"],
        pattern_id=row["pattern_id"],
        user_id=row["user_id"],
        action=row["action"],
        context=context or {},
        session_id=row["session_id"],
        project_id=row["project_id"],
        created_at=row["created_at"],
    )


class UsageTracker:
    """Records and summarizes pattern consumption."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the pattern_usage table (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Pattern usage table ensured")

    async def track(
        self,
        pattern_id: str,
        action: str,
        context: dict | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        project_id: str | None = None,
    ) -> UsageEvent:
        """Append one usage event and reconcile the pattern's counters.

        Raises:
            ValidationError: Unknown action.
            NotFoundError: Unknown pattern.
        """
        try:
            event = UsageEvent(
                pattern_id=pattern_id,
                action=(action or "").lower(),
                user_id=user_id,
                context=context or {},
                session_id=session_id,
                project_id=project_id,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        async with self._db.transaction() as conn:
            exists = await conn.fetchval(
                "SELECT 1 FROM patterns WHERE id = $1", pattern_id
            )
            if not exists:
                raise NotFoundError("Pattern", pattern_id)
            await conn.execute(_INSERT_SQL, *self._insert_args(event))
            await conn.execute(_RECONCILE_SQL, [pattern_id])

        get_metrics().record_usage(event.action)
        return event

    async def track_many(
        self,
        pattern_ids: list[str],
        action: str,
        user_id: str | None = None,
        context: dict | None = None,
    ) -> int:
        """Append one event per pattern in a single transaction (exports)."""
        if not pattern_ids:
            return 0
        events = [
            UsageEvent(
                pattern_id=pid,
                action=action,
                user_id=user_id,
                context=context or {},
            )
            for pid in pattern_ids
        ]
        async with self._db.transaction() as conn:
            await conn.executemany(_INSERT_SQL, [self._insert_args(e) for e in events])
            await conn.execute(_RECONCILE_SQL, list(pattern_ids))

        get_metrics().record_usage(action, count=len(events))
        return len(events)

    @staticmethod
    def _insert_args(event: UsageEvent) -> tuple:
        return (
            event.id,
            event.pattern_id,
            event.user_id,
            event.action,
            json.dumps(event.context),
            event.session_id,
            event.project_id,
            event.created_at,
        )

    async def stats(self, pattern_id: str, recent: int = 10) -> dict[str, Any]:
        """Usage statistics for one pattern, computed from the log."""
        exists = await self._db.fetchval("SELECT 1 FROM patterns WHERE id = $1", pattern_id)
        if not exists:
            raise NotFoundError("Pattern", pattern_id)

        totals = await self._db.fetchrow(
            """
            SELECT COUNT(*) AS total, COUNT(DISTINCT user_id) AS unique_users
            FROM pattern_usage WHERE pattern_id = $1
            """,
            pattern_id,
        )
        breakdown_rows = await self._db.fetch(
            """
            SELECT action, COUNT(*) AS count FROM pattern_usage
            WHERE pattern_id = $1 GROUP BY action ORDER BY action
            """,
            pattern_id,
        )
        recent_rows = await self._db.fetch(
            """
            SELECT * FROM pattern_usage WHERE pattern_id = $1
            ORDER BY created_at DESC LIMIT $2
            """,
            pattern_id, recent,
        )
        return {
            "pattern_id": pattern_id,
            "total": totals["total"] if totals else 0,
            "unique_users": totals["unique_users"] if totals else 0,
            "action_breakdown": {r["action"]: r["count"] for r in breakdown_rows},
            "recent": [_row_to_event(r).to_dict() for r in recent_rows],
        }

    async def summary(
        self,
        since: datetime | None = None,
        action: str | None = None,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """Usage counts by action across all patterns."""
        conditions: list[str] = []
        params: list[Any] = []
        idx = 1

        if since is not None:
            conditions.append(f"created_at >= ${idx}")
            params.append(since)
            idx += 1
        if action:
            conditions.append(f"action = ${idx}")
            params.append(action.lower())
            idx += 1
        if user_id:
            conditions.append(f"user_id = ${idx}")
            params.append(user_id)
            idx += 1

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        rows = await self._db.fetch(
            f"""
            SELECT action, COUNT(*) AS count, COUNT(DISTINCT pattern_id) AS patterns
            FROM pattern_usage{where_clause}
            GROUP BY action ORDER BY action
            """,
            *params,
        )
        by_action = {r["action"]: r["count"] for r in rows}
        return {
            "total": sum(by_action.values()),
            "by_action": by_action,
            "patterns_by_action": {r["action"]: r["patterns"] for r in rows},
        }

    async def purge(
        self,
        pattern_id: str | None = None,
        older_than_days: int | None = None,
    ) -> int:
        """Delete usage events and reconcile affected counters.

        At least one criterion is required. Returns the number deleted.
        """
        if pattern_id is None and older_than_days is None:
            raise ValidationError("purge requires pattern_id or older_than_days")

        conditions: list[str] = []
        params: list[Any] = []
        idx = 1
        if pattern_id is not None:
            conditions.append(f"pattern_id = ${idx}")
            params.append(pattern_id)
            idx += 1
        if older_than_days is not None:
            conditions.append(f"created_at < NOW() - make_interval(days => ${idx})")
            params.append(older_than_days)
            idx += 1
        where_clause = " AND ".join(conditions)

        async with self._db.transaction() as conn:
            rows = await conn.fetch(
                f"DELETE FROM pattern_usage WHERE {where_clause} RETURNING pattern_id",
                *params,
            )
            affected = sorted({r["pattern_id"] for r in rows})
            if affected:
                await conn.execute(_RECONCILE_SQL, affected)

        logger.info("Purged %d usage events across %d patterns", len(rows), len(affected))
        return len(rows)

    async def event_count(self, pattern_id: str) -> int:
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM pattern_usage WHERE pattern_id = $1", pattern_id
        )

