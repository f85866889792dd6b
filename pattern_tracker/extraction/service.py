"""
Extraction entry point.

Resolves what to extract (an update, a source's latest update, or raw
content), runs the PatternExtractor, and persists the outcome
all-or-nothing: pattern inserts, the update's processed flag and the
queue entry's removal commit in one transaction. The processed flag is
flipped first inside that transaction, so of two concurrent extractions
of one update only the first to commit stores patterns. When the AI call
fails nothing is written and the update stays unprocessed; a queue entry
claimed by the caller is released for retry.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from pattern_tracker.errors import (
    ExtractionError,
    NotFoundError,
    RunStatus,
    ValidationError,
    classify_outcome,
)
from pattern_tracker.extraction.extractor import PatternExtractor, SourceContext
from pattern_tracker.extraction.queue import ExtractionQueue
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.patterns.repository import PatternRepository
from pattern_tracker.patterns.schemas import Pattern
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.sources.schemas import Source
from pattern_tracker.storage.database import Database
from pattern_tracker.updates.repository import UpdatesRepository
from pattern_tracker.updates.schemas import Update

logger = structlog.get_logger(__name__)

FAST_PATH_WORKER_ID = "fast-path"


@dataclass
class ExtractionResult:
    """Outcome of one extraction request."""

    patterns: list[Pattern] = field(default_factory=list)
    total: int = 0
    saved: int = 0
    failed: int = 0
    update_id: str | None = None
    source_id: str | None = None
    parsed_kind: str | None = None
    skipped: bool = False
    error: str | None = None

    @property
    def status(self) -> RunStatus:
        if self.error:
            return RunStatus.FAILURE
        if self.skipped:
            return RunStatus.NOTHING_TO_DO
        if self.total == 0:
            return RunStatus.SUCCESS
        return classify_outcome(self.total, self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "update_id": self.update_id,
            "source_id": self.source_id,
            "status": self.status.value,
            "skipped": self.skipped,
            "parsed_kind": self.parsed_kind,
            "error": self.error,
            "patterns": [p.to_dict() for p in self.patterns],
            "stats": {"total": self.total, "saved": self.saved, "failed": self.failed},
        }


class ExtractionService:
    """Runs extraction for updates, sources or raw content.

    Args:
        database: Database connection
        extractor: Pattern extractor wrapping the AI collaborator
        queue: Extraction queue (or create from database)
    """

    def __init__(
        self,
        database: Database,
        extractor: PatternExtractor,
        queue: ExtractionQueue | None = None,
    ) -> None:
        self._db = database
        self._extractor = extractor
        self._queue = queue or ExtractionQueue(database)
        self._sources = SourcesRepository(database)
        self._updates = UpdatesRepository(database)
        self._patterns = PatternRepository(database)

    @property
    def queue(self) -> ExtractionQueue:
        return self._queue

    async def extract(
        self,
        update_id: str | None = None,
        source_id: str | None = None,
        content: Any = None,
        force: bool = False,
        claimed: bool = False,
    ) -> ExtractionResult:
        """Extract patterns.

        Exactly one target is used, in this order: ``update_id``, raw
        ``content`` (saved under ``source_id`` when given, otherwise
        returned unsaved), or the latest update of ``source_id``.
        Already processed updates are skipped unless ``force`` is set.
        ``claimed`` means the caller holds the update's queue entry, which
        is then released if the AI call fails.

        Raises:
            ValidationError: No target given.
            NotFoundError: Unknown update or source, or a source with no updates.
            ExtractionError: The AI call failed; nothing was written.
        """
        update: Update | None = None
        source: Source | None = None

        if update_id:
            update = await self._updates.get(update_id)
            if update is None:
                raise NotFoundError("Update", update_id)
            source = await self._require_source(update.source_id)
        elif content is not None:
            if not str(content).strip():
                raise ValidationError("content must not be empty")
            if source_id:
                source = await self._require_source(source_id)
        elif source_id:
            source = await self._require_source(source_id)
            update = await self._updates.get_latest(source_id)
            if update is None:
                raise NotFoundError("Update for source", source_id)
        else:
            raise ValidationError("One of update_id, source_id or content is required")

        if update is not None and update.processed and not force:
            # Keep the "processed implies no queue entry" invariant on retries
            await self._queue.remove(update.id)
            logger.info("Update already processed, skipping", update_id=update.id)
            get_metrics().record_extraction("skipped")
            return ExtractionResult(
                update_id=update.id, source_id=update.source_id, skipped=True
            )

        return await self._run(update, source, content, force, claimed)

    async def _require_source(self, source_id: str) -> Source:
        source = await self._sources.get(source_id)
        if source is None:
            raise NotFoundError("Source", source_id)
        return source

    async def _run(
        self,
        update: Update | None,
        source: Source | None,
        raw_content: Any,
        force: bool = False,
        claimed: bool = False,
    ) -> ExtractionResult:
        metrics = get_metrics()
        context = SourceContext(
            source_id=source.id if source else "",
            name=source.name if source else "Direct Content",
            category=source.category if source else "MANUAL",
            update_id=update.id if update else None,
        )
        content = update.content if update is not None else raw_content

        try:
            output = await self._extractor.extract(content, context)
        except ExtractionError as e:
            metrics.record_extraction("error")
            if update is not None and claimed:
                await self._queue.release(update.id, str(e))
            logger.warning(
                "Extraction failed",
                update_id=context.update_id,
                source_id=context.source_id,
                error=str(e),
            )
            raise

        result = ExtractionResult(
            patterns=output.patterns,
            total=len(output.patterns) + output.failed,
            failed=output.failed,
            update_id=context.update_id,
            source_id=context.source_id or None,
            parsed_kind=output.parsed_kind,
        )

        if source is None:
            # Raw content with no owning source is analyzed but not stored
            metrics.record_extraction("success")
            return result

        async with self._db.transaction() as conn:
            flipped = False
            if update is not None:
                flipped = await self._updates.mark_processed(
                    update.id, len(output.patterns), conn=conn
                )
            if update is not None and not flipped and not force:
                # A concurrent extraction committed first
                await self._queue.remove(update.id, conn=conn)
                result.patterns = []
                result.skipped = True
            else:
                result.saved = await self._patterns.create_many(output.patterns, conn=conn)
                if update is not None:
                    if not flipped:
                        await self._updates.add_patterns_found(
                            update.id, result.saved, conn=conn
                        )
                    await self._queue.remove(update.id, conn=conn)

        if result.skipped:
            logger.info("Update processed concurrently, discarding", update_id=update.id)
            metrics.record_extraction("skipped")
            return result

        for pattern in output.patterns:
            metrics.record_pattern(pattern.category)
        metrics.record_extraction("success")
        logger.info(
            "Extraction complete",
            update_id=result.update_id,
            source_id=result.source_id,
            saved=result.saved,
            failed=result.failed,
            parsed_kind=result.parsed_kind,
        )
        return result

    async def skip(self, update_id: str) -> bool:
        """Mark an update processed without extracting and drop its queue entry."""
        if await self._updates.get(update_id) is None:
            raise NotFoundError("Update", update_id)
        async with self._db.transaction() as conn:
            flipped = await self._updates.mark_processed(update_id, 0, conn=conn)
            await self._queue.remove(update_id, conn=conn)
        logger.info("Update skipped", update_id=update_id)
        return flipped

    async def run_fast_path(self, update_id: str) -> ExtractionResult | None:
        """Best-effort immediate extraction of a freshly queued update.

        Claims the queue entry first so a concurrent worker cannot take it.
        Returns None when the entry is already gone or owned elsewhere.
        On failure the entry is released and stays for the worker.
        """
        entry = await self._queue.claim(update_id, FAST_PATH_WORKER_ID)
        if entry is None:
            return None
        return await self.extract(update_id=update_id, claimed=True)
