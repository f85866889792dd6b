"""
Monitoring run: fetch → detect → store → enqueue, per source.

Each source is processed independently and concurrently; the fetcher
bounds how many requests are in flight. A source's failure is recorded
on its row and in the run result but never aborts the rest of the batch.

After every fetch attempt the source's reliability moves by the feedback
loop. Changed snapshots of extraction-enabled sources are queued; for
high-priority sources a fast-path extraction task is started right away.
That task claims its queue entry first and, if it fails, leaves the entry
for the worker.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from pattern_tracker.errors import RunStatus, classify_outcome
from pattern_tracker.extraction.queue import ExtractionQueue
from pattern_tracker.extraction.service import ExtractionService
from pattern_tracker.fetcher.base import ContentFetcher
from pattern_tracker.monitor.change_detector import ChangeDetector
from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.monitor.lease import SourceLease
from pattern_tracker.monitor.scheduler import Scheduler
from pattern_tracker.observability.logging import bind_context, clear_context
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.sources.schemas import Source
from pattern_tracker.storage.database import Database
from pattern_tracker.updates.repository import UpdatesRepository

logger = structlog.get_logger(__name__)


@dataclass
class SourceCheckResult:
    """Per-source outcome of a monitoring run."""

    source_id: str
    name: str
    url: str
    status: str  # success, error, skipped
    changed: bool = False
    change_type: str | None = None
    update_id: str | None = None
    enqueued: bool = False
    reliability: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "url": self.url,
            "status": self.status,
            "changed": self.changed,
            "change_type": self.change_type,
            "update_id": self.update_id,
            "enqueued": self.enqueued,
            "reliability": self.reliability,
            "error": self.error,
        }


@dataclass
class MonitorRunResult:
    """Outcome of a whole monitoring run."""

    run_id: str
    results: list[SourceCheckResult] = field(default_factory=list)
    fast_path_extractions: int = 0

    @property
    def monitored(self) -> int:
        return len(self.results)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "total": len(self.results),
            "successful": sum(1 for r in self.results if r.status == "success"),
            "changed": sum(1 for r in self.results if r.changed),
            "errors": sum(1 for r in self.results if r.status == "error"),
            "skipped": sum(1 for r in self.results if r.status == "skipped"),
            "enqueued": sum(1 for r in self.results if r.enqueued),
        }

    @property
    def status(self) -> RunStatus:
        stats = self.stats
        return classify_outcome(stats["total"] - stats["skipped"], stats["errors"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "monitored": self.monitored,
            "results": [r.to_dict() for r in self.results],
            "stats": self.stats,
            "fast_path_extractions": self.fast_path_extractions,
        }


class MonitorService:
    """
    Runs bounded monitoring batches.

    Args:
        database: Database connection
        fetcher: Content fetcher collaborator
        extraction: Extraction service for the fast path (None disables it)
        lease: Per-source lease (None relies on the last_scraped window only)
        config: Monitor settings
    """

    def __init__(
        self,
        database: Database,
        fetcher: ContentFetcher,
        extraction: ExtractionService | None = None,
        lease: SourceLease | None = None,
        config: MonitorConfig | None = None,
        queue: ExtractionQueue | None = None,
    ) -> None:
        self._db = database
        self._fetcher = fetcher
        self._extraction = extraction
        self._lease = lease
        self._config = config or MonitorConfig()
        self._sources = SourcesRepository(database)
        self._detector = ChangeDetector(UpdatesRepository(database))
        self._queue = queue or (extraction.queue if extraction else ExtractionQueue(database))
        self._scheduler = Scheduler(self._sources, self._config)
        self._metrics = get_metrics()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    async def run(
        self,
        frequency: str | None = None,
        source_ids: list[str] | None = None,
        all_active: bool = False,
        limit: int | None = None,
    ) -> MonitorRunResult:
        """Select sources and check each of them.

        ``frequency`` selects a scheduling tier; otherwise explicit
        ``source_ids``, ``all_active``, or stale sources are used.
        """
        if frequency:
            sources = await self._scheduler.due_sources(frequency, limit)
        else:
            sources = await self._scheduler.select_sources(source_ids, all_active, limit)

        return await self.check_sources(sources)

    async def check_sources(self, sources: list[Source]) -> MonitorRunResult:
        """Check an already selected batch of sources."""
        run = MonitorRunResult(run_id=f"run_{uuid.uuid4().hex[:12]}")
        bind_context(run_id=run.run_id)
        try:
            if not sources:
                logger.info("No sources due")
                return run

            logger.info("Monitoring run started", sources=len(sources))
            fast_path: list[asyncio.Task] = []
            run.results = list(
                await asyncio.gather(
                    *(self._check_source(source, fast_path) for source in sources)
                )
            )

            if fast_path:
                outcomes = await asyncio.gather(*fast_path, return_exceptions=True)
                run.fast_path_extractions = sum(1 for o in outcomes if o is True)

            self._metrics.set_queue_depth(await self._queue.depth())
            logger.info("Monitoring run finished", status=run.status.value, **run.stats)
            return run
        finally:
            clear_context()

    async def _check_source(
        self, source: Source, fast_path: list[asyncio.Task]
    ) -> SourceCheckResult:
        result = SourceCheckResult(
            source_id=source.id, name=source.name, url=source.url, status="success"
        )

        token: str | None = None
        try:
            if self._lease is not None and self._config.lease_enabled:
                try:
                    token = await self._lease.acquire(source.id)
                except Exception as e:
                    # Lease store unreachable: fall back to the last_scraped window
                    logger.warning("Lease unavailable", source_id=source.id, error=str(e))
                else:
                    if token is None:
                        result.status = "skipped"
                        result.error = "source is being checked by another run"
                        return result

            await self._fetch_and_store(source, result, fast_path)
        except Exception as e:
            # Isolate storage errors; fetch errors are handled inside
            logger.exception("Source check failed", source_id=source.id)
            result.status = "error"
            result.error = f"{type(e).__name__}: {e}"
        finally:
            if token is not None:
                await self._release(source.id, token)

        return result

    async def _release(self, source_id: str, token: str) -> None:
        try:
            await self._lease.release(source_id, token)
        except Exception as e:
            # The lease expires after its TTL
            logger.warning("Lease release failed", source_id=source_id, error=str(e))

    async def _fetch_and_store(
        self,
        source: Source,
        result: SourceCheckResult,
        fast_path: list[asyncio.Task],
    ) -> None:
        start = time.monotonic()
        try:
            snapshot = await self._fetcher.fetch(source.url)
        except Exception as e:
            # Fetch failure writes no Update; the source row records the error
            error = str(e) or type(e).__name__
            reliability = await self._sources.record_failure(source.id, error)
            self._metrics.record_source_check("error", latency=time.monotonic() - start)
            if reliability is not None:
                self._metrics.set_reliability(source.id, reliability)
            logger.warning("Fetch failed", source_id=source.id, url=source.url, error=str(e))
            result.status = "error"
            result.error = error
            result.reliability = reliability
            return

        async with self._db.transaction() as conn:
            detection = await self._detector.detect(source, snapshot, conn=conn)
            # Delta is applied to the stored row, not to the selection-time copy
            reliability = await self._sources.record_success(
                source.id, detection.changed, conn=conn
            )
            enqueued = False
            if detection.changed and source.extract_patterns:
                enqueued = await self._queue.enqueue(
                    source.id, detection.update.id, source.priority, conn=conn
                )

        self._metrics.record_source_check(
            "success",
            changed=detection.changed,
            change_type=detection.change_type,
            latency=time.monotonic() - start,
        )
        if reliability is not None:
            self._metrics.set_reliability(source.id, reliability)
        if enqueued:
            self._metrics.queue_enqueued.inc()

        result.changed = detection.changed
        result.change_type = detection.change_type
        result.update_id = detection.update.id
        result.enqueued = enqueued
        result.reliability = reliability

        logger.info(
            "Source checked",
            source_id=source.id,
            changed=detection.changed,
            change_type=detection.change_type,
            enqueued=enqueued,
        )

        if (
            enqueued
            and self._extraction is not None
            and self._config.fast_path_enabled
            and source.priority >= self._config.fast_path_priority
        ):
            fast_path.append(
                asyncio.create_task(self._run_fast_path(detection.update.id))
            )

    async def _run_fast_path(self, update_id: str) -> bool:
        """Fast-path extraction; failures are logged and left to the worker."""
        try:
            extracted = await self._extraction.run_fast_path(update_id)
        except Exception as e:
            logger.warning(
                "Fast-path extraction failed, left for worker",
                update_id=update_id,
                error=str(e),
            )
            return False
        return extracted is not None
