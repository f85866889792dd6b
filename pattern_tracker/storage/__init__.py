"""PostgreSQL access."""

from pattern_tracker.storage.database import Database, affected_rows

__all__ = ["Database", "affected_rows"]
