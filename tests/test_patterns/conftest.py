"""Shared fixtures for pattern tests."""

from datetime import datetime, timezone

import pytest

from pattern_tracker.patterns.schemas import Pattern
from pattern_tracker.sources.schemas import Source


@pytest.fixture
def make_pattern():
    def _make(**overrides) -> Pattern:
        fields = {
            "id": "pat_000000000001",
            "source_id": "src_000000000001",
            "update_id": "upd_000000000001",
            "name": "Await connect()",
            "description": "connect() is now a coroutine.",
            "category": "BREAKING_CHANGE",
            "confidence": 0.9,
            "relevance": 0.8,
            "status": "APPROVED",
            "metadata": {"examples": ["await client.connect()"], "tags": ["async", "io"]},
            "extracted_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return Pattern(**fields)

    return _make


@pytest.fixture
def pattern_row():
    def _make(**overrides) -> dict:
        row = {
            "id": "pat_000000000001",
            "source_id": "src_000000000001",
            "update_id": "upd_000000000001",
            "name": "Await connect()",
            "description": "connect() is now a coroutine.",
            "category": "BREAKING_CHANGE",
            "confidence": 0.9,
            "relevance": 0.8,
            "status": "PENDING",
            "metadata": '{"tags": ["async"]}',
            "extracted_by": "ai",
            "extracted_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
            "approved_at": None,
            "approved_by": None,
            "usage_count": 0,
            "last_used_at": None,
            "created_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
            "updated_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def sources() -> dict[str, Source]:
    source = Source(
        id="src_000000000001",
        url="https://docs.example.com/changelog",
        name="Example Docs",
        category="framework",
    )
    return {source.id: source}
