"""
Pipeline service - the public entry points of the tracker.

Wires the repositories, workflow objects and collaborators together and
exposes the operations front ends call: monitoring runs, extraction,
review, usage tracking, listing, export and queue draining. Front ends
(the CLI, a dashboard, a scheduler) only talk to this class.

Collaborators are injected for tests; omitted ones are built from
settings. The Redis lease is optional so the service also runs where
only PostgreSQL is available.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from pattern_tracker.errors import ExtractionError, ValidationError
from pattern_tracker.extraction.config import ExtractionConfig
from pattern_tracker.extraction.extractor import PatternExtractor
from pattern_tracker.extraction.llm_client import AIClient, LLMClient
from pattern_tracker.extraction.queue import ExtractionQueue
from pattern_tracker.extraction.service import ExtractionResult, ExtractionService
from pattern_tracker.extraction.worker import ExtractionWorker, WorkerRunResult
from pattern_tracker.fetcher.base import ContentFetcher
from pattern_tracker.fetcher.http import HttpContentFetcher
from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.monitor.lease import SourceLease
from pattern_tracker.monitor.service import MonitorRunResult, MonitorService
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.patterns.config import PatternsConfig
from pattern_tracker.patterns.export import render
from pattern_tracker.patterns.repository import PatternRepository
from pattern_tracker.patterns.review import ReviewOutcome, ReviewWorkflow
from pattern_tracker.patterns.schemas import Pattern, PatternFilter, Review, UsageEvent
from pattern_tracker.patterns.usage import UsageTracker
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.storage.database import Database

logger = structlog.get_logger(__name__)


@dataclass
class PatternPage:
    """One page of a filtered pattern listing."""

    patterns: list[Pattern]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass
class ExportResult:
    """A rendered export document."""

    format: str
    content: str
    count: int
    pattern_ids: list[str] = field(default_factory=list)
    usage_tracked: int = 0
    exported_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "count": self.count,
            "usage_tracked": self.usage_tracked,
            "exported_at": self.exported_at.isoformat(),
            "content": self.content,
        }


class PipelineService:
    """
    Facade over the whole monitoring and moderation pipeline.

    Usage:
        async with PipelineService() as pipeline:
            run = await pipeline.run_monitoring(frequency="DAILY")
            drained = await pipeline.drain_queue(max_entries=10)
    """

    def __init__(
        self,
        database: Database | None = None,
        fetcher: ContentFetcher | None = None,
        ai_client: AIClient | None = None,
        lease: SourceLease | None = None,
        monitor_config: MonitorConfig | None = None,
        extraction_config: ExtractionConfig | None = None,
        patterns_config: PatternsConfig | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            database: Database connection (or create from settings)
            fetcher: Content fetcher (or the HTTP fetcher)
            ai_client: AI collaborator (or the Anthropic client)
            lease: Per-source lease (None disables it)
            monitor_config: Monitoring settings
            extraction_config: Extraction settings
            patterns_config: Listing/export settings
        """
        self._db = database or Database()
        self._owns_db = database is None
        self._fetcher = fetcher or HttpContentFetcher()
        self._extraction_config = extraction_config or ExtractionConfig()
        self._ai_client = ai_client or LLMClient(self._extraction_config)
        self._lease = lease
        self._patterns_config = patterns_config or PatternsConfig()

        self._queue = ExtractionQueue(self._db, self._extraction_config)
        self._extraction = ExtractionService(
            self._db,
            PatternExtractor(self._ai_client, self._extraction_config),
            queue=self._queue,
        )
        self._monitor = MonitorService(
            self._db,
            self._fetcher,
            extraction=self._extraction,
            lease=lease,
            config=monitor_config,
            queue=self._queue,
        )
        self._reviews = ReviewWorkflow(self._db)
        self._usage = UsageTracker(self._db)
        self._patterns = PatternRepository(self._db)
        self._sources = SourcesRepository(self._db)

    @property
    def database(self) -> Database:
        return self._db

    @property
    def extraction(self) -> ExtractionService:
        return self._extraction

    @property
    def monitor(self) -> MonitorService:
        return self._monitor

    async def connect(self) -> None:
        if self._owns_db:
            await self._db.connect()

    async def close(self) -> None:
        """Release the fetcher, AI client, lease and (owned) database."""
        await self._fetcher.close()
        close_client = getattr(self._ai_client, "close", None)
        if close_client is not None:
            await close_client()
        if self._lease is not None:
            await self._lease.close()
        if self._owns_db:
            await self._db.close()

    async def __aenter__(self) -> "PipelineService":
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # Monitoring and extraction

    async def run_monitoring(
        self,
        frequency: str | None = None,
        source_ids: list[str] | None = None,
        all_active: bool = False,
        limit: int | None = None,
    ) -> MonitorRunResult:
        """One bounded monitoring run."""
        return await self._monitor.run(
            frequency=frequency,
            source_ids=source_ids,
            all_active=all_active,
            limit=limit,
        )

    async def extract(
        self,
        update_id: str | None = None,
        source_id: str | None = None,
        content: Any = None,
        force: bool = False,
    ) -> ExtractionResult:
        """Extract patterns on demand.

        AI failures are reported on the result rather than raised; bad
        input and unknown ids still raise.
        """
        try:
            return await self._extraction.extract(
                update_id=update_id, source_id=source_id, content=content, force=force
            )
        except ExtractionError as e:
            return ExtractionResult(update_id=update_id, source_id=source_id, error=str(e))

    async def drain_queue(self, max_entries: int = 10) -> WorkerRunResult:
        """Process up to ``max_entries`` queued updates."""
        if max_entries < 1:
            raise ValidationError(f"max_entries must be >= 1, got {max_entries}")
        worker = ExtractionWorker(self._extraction)
        return await worker.run_once(max_entries=max_entries)

    # Moderation and consumption

    async def review(
        self,
        pattern_id: str,
        action: str,
        reviewer_id: str,
        feedback: str | None = None,
        metadata: dict | None = None,
    ) -> ReviewOutcome:
        return await self._reviews.review(
            pattern_id, action, reviewer_id, feedback=feedback, metadata=metadata
        )

    async def review_history(self, pattern_id: str, limit: int = 50) -> list[Review]:
        return await self._reviews.history(pattern_id, limit=limit)

    async def track_usage(
        self,
        pattern_id: str,
        action: str,
        context: dict | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        project_id: str | None = None,
    ) -> UsageEvent:
        return await self._usage.track(
            pattern_id,
            action,
            context=context,
            user_id=user_id,
            session_id=session_id,
            project_id=project_id,
        )

    async def usage_stats(self, pattern_id: str, recent: int | None = None) -> dict[str, Any]:
        return await self._usage.stats(
            pattern_id, recent=recent or self._patterns_config.usage_recent_events
        )

    async def list_patterns(self, flt: PatternFilter | None = None) -> PatternPage:
        """Filtered, paginated pattern listing."""
        flt = flt or PatternFilter(limit=self._patterns_config.default_page_size)
        patterns, total = await self._patterns.list_patterns(flt)
        return PatternPage(patterns=patterns, total=total, limit=flt.limit, offset=flt.offset)

    async def export(
        self,
        flt: PatternFilter | None = None,
        fmt: str = "json",
        user_id: str | None = None,
        track_usage: bool | None = None,
    ) -> ExportResult:
        """Render matching patterns and record one 'exported' event each.

        With no filter, only approved patterns are exported.

        Raises:
            ValidationError: Unknown format.
        """
        fmt = (fmt or "").lower()
        flt = flt or PatternFilter(status=self._patterns_config.export_default_status)
        patterns = await self._patterns.list_for_export(flt)
        sources = await self._sources.get_many(sorted({p.source_id for p in patterns}))

        try:
            content = render(patterns, fmt, sources=sources)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        result = ExportResult(
            format=fmt,
            content=content,
            count=len(patterns),
            pattern_ids=[p.id for p in patterns],
        )

        if track_usage is None:
            track_usage = self._patterns_config.export_track_usage
        if track_usage and patterns:
            result.usage_tracked = await self._usage.track_many(
                result.pattern_ids,
                "exported",
                user_id=user_id,
                context={"format": fmt},
            )

        get_metrics().record_export(fmt)
        logger.info(
            "Patterns exported",
            format=fmt,
            count=result.count,
            usage_tracked=result.usage_tracked,
        )
        return result
