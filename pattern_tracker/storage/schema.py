"""Schema bootstrap: creates every table in foreign-key order."""

import logging

from pattern_tracker.extraction.queue import ExtractionQueue
from pattern_tracker.patterns.repository import PatternRepository
from pattern_tracker.patterns.usage import UsageTracker
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.storage.database import Database
from pattern_tracker.updates.repository import UpdatesRepository

logger = logging.getLogger(__name__)

TABLES = (
    "sources",
    "updates",
    "extraction_queue",
    "patterns",
    "pattern_reviews",
    "pattern_usage",
)


async def create_all(database: Database) -> None:
    """Create all tables (idempotent)."""
    await SourcesRepository(database).create_table()
    await UpdatesRepository(database).create_table()
    await ExtractionQueue(database).create_table()
    await PatternRepository(database).create_table()
    await UsageTracker(database).create_table()
    logger.info("Schema ready: %s", ", ".join(TABLES))
