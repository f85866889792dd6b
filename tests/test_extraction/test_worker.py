"""Tests for ExtractionWorker queue draining."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pattern_tracker.errors import ExtractionError, NotFoundError, RunStatus
from pattern_tracker.extraction.service import ExtractionResult
from pattern_tracker.extraction.worker import ExtractionWorker


def _entry(update_id: str) -> MagicMock:
    entry = MagicMock()
    entry.update_id = update_id
    return entry


@pytest.fixture
def queue() -> AsyncMock:
    q = AsyncMock()
    q.depth = AsyncMock(return_value=0)
    return q


@pytest.fixture
def service(queue: AsyncMock) -> MagicMock:
    svc = MagicMock()
    svc.queue = queue
    svc.extract = AsyncMock(
        side_effect=lambda update_id, claimed=False: ExtractionResult(
            update_id=update_id, saved=2, total=2
        )
    )
    return svc


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_drains_until_empty(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_a"), _entry("upd_b"), None])
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once(max_entries=10)

        assert result.processed == 2
        assert result.succeeded == 2
        assert result.patterns_saved == 4
        assert result.status == RunStatus.SUCCESS
        queue.dequeue_next.assert_awaited_with("w1")

    @pytest.mark.asyncio
    async def test_respects_max_entries(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_a"), _entry("upd_b")])
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once(max_entries=1)

        assert result.processed == 1
        assert queue.dequeue_next.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_queue(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(return_value=None)
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once()

        assert result.processed == 0
        assert result.status == RunStatus.NOTHING_TO_DO

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_a"), _entry("upd_b"), None])

        async def extract(update_id, claimed=False):
            if update_id == "upd_a":
                raise ExtractionError("AI timeout")
            return ExtractionResult(update_id=update_id, saved=1, total=1)

        service.extract = AsyncMock(side_effect=extract)
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once()

        assert result.failed == 1
        assert result.succeeded == 1
        assert result.status == RunStatus.PARTIAL_FAILURE
        assert result.errors == [{"update_id": "upd_a", "error": "AI timeout"}]

    @pytest.mark.asyncio
    async def test_orphan_entry_removed(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_gone"), None])
        service.extract = AsyncMock(side_effect=NotFoundError("Update", "upd_gone"))
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once()

        queue.remove.assert_awaited_once_with("upd_gone")
        assert result.skipped == 1
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_already_processed_counted_as_skipped(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_a"), None])
        service.extract = AsyncMock(
            return_value=ExtractionResult(update_id="upd_a", skipped=True)
        )
        worker = ExtractionWorker(service, worker_id="w1")

        result = await worker.run_once()

        assert result.skipped == 1
        assert result.succeeded == 0

    def test_generated_worker_id(self, service) -> None:
        worker = ExtractionWorker(service)
        assert worker.worker_id


class TestClaimOwnership:
    @pytest.mark.asyncio
    async def test_extracts_as_claim_holder(self, service, queue) -> None:
        queue.dequeue_next = AsyncMock(side_effect=[_entry("upd_a"), None])
        worker = ExtractionWorker(service, worker_id="w1")

        await worker.run_once()

        service.extract.assert_awaited_once_with(update_id="upd_a", claimed=True)
