"""Shared fixtures for monitor tests."""

from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from pattern_tracker.fetcher.schemas import Snapshot
from pattern_tracker.sources.schemas import Source
from pattern_tracker.updates.schemas import Update


class InMemoryUpdates:
    """Append-only update log with the UpdatesRepository interface used by detection."""

    def __init__(self) -> None:
        self.rows: list[Update] = []

    async def get_latest(self, source_id: str, conn: Any = None) -> Update | None:
        for update in reversed(self.rows):
            if update.source_id == source_id:
                return update
        return None

    async def create(self, update: Update, conn: Any = None) -> Update:
        self.rows.append(update)
        return update


@pytest.fixture
def updates() -> InMemoryUpdates:
    return InMemoryUpdates()


@pytest.fixture
def make_source():
    def _make(**overrides) -> Source:
        fields = {
            "url": "https://docs.example.com/changelog",
            "name": "Example Docs",
            "priority": 1,
        }
        fields.update(overrides)
        return Source(**fields)

    return _make


@pytest.fixture
def snapshot() -> Snapshot:
    return Snapshot(
        url="https://docs.example.com/changelog",
        title="Changelog",
        markdown="# v2\n\nThe connect call is now async and retries on failure.",
    )


@pytest.fixture
def mock_fetcher(snapshot: Snapshot) -> AsyncMock:
    fetcher = AsyncMock()
    fetcher.fetch = AsyncMock(return_value=snapshot)
    return fetcher


@pytest.fixture
def mock_queue() -> AsyncMock:
    queue = AsyncMock()
    queue.enqueue = AsyncMock(return_value=True)
    queue.depth = AsyncMock(return_value=0)
    return queue


@pytest.fixture
def old() -> datetime:
    return datetime(2025, 1, 1, tzinfo=timezone.utc)
