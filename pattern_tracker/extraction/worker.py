"""
Extraction worker - drains the extraction queue.

Each entry is claimed atomically, extracted, and removed in the same
transaction that stores its patterns. A failed entry is released back to
PENDING and retried by a later run; one failure never stops the batch.
"""

import socket
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from pattern_tracker.errors import ExtractionError, NotFoundError, RunStatus, classify_outcome
from pattern_tracker.extraction.service import ExtractionService
from pattern_tracker.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)


@dataclass
class WorkerRunResult:
    """Summary of one queue drain."""

    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    patterns_saved: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def status(self) -> RunStatus:
        return classify_outcome(self.processed, self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "patterns_saved": self.patterns_saved,
            "errors": self.errors,
        }


class ExtractionWorker:
    """
    Drains the extraction queue in priority order.

    Safe to run as several concurrent processes: dequeue claims entries
    with FOR UPDATE SKIP LOCKED.

    Usage:
        worker = ExtractionWorker(service)
        result = await worker.run_once(max_entries=10)
    """

    def __init__(self, service: ExtractionService, worker_id: str | None = None) -> None:
        self._service = service
        self._queue = service.queue
        self._worker_id = worker_id or f"{socket.gethostname()}-{uuid.uuid4().hex[:6]}"

    @property
    def worker_id(self) -> str:
        return self._worker_id

    async def run_once(self, max_entries: int = 10) -> WorkerRunResult:
        """Process up to ``max_entries`` queue entries."""
        result = WorkerRunResult()

        while result.processed < max_entries:
            entry = await self._queue.dequeue_next(self._worker_id)
            if entry is None:
                break
            result.processed += 1

            try:
                extraction = await self._service.extract(update_id=entry.update_id, claimed=True)
            except NotFoundError as e:
                # Update deleted underneath the queue; nothing left to extract
                await self._queue.remove(entry.update_id)
                result.skipped += 1
                logger.warning("Dropping orphan queue entry", update_id=entry.update_id, error=str(e))
                continue
            except ExtractionError as e:
                result.failed += 1
                result.errors.append({"update_id": entry.update_id, "error": str(e)})
                continue

            if extraction.skipped:
                result.skipped += 1
            else:
                result.succeeded += 1
                result.patterns_saved += extraction.saved

        get_metrics().set_queue_depth(await self._queue.depth())
        logger.info(
            "Extraction worker run finished",
            worker_id=self._worker_id,
            **{k: v for k, v in result.to_dict().items() if k != "errors"},
        )
        return result
