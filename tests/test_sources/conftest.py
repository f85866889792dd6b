"""Shared fixtures for sources tests."""

from datetime import datetime, timezone

import pytest

from pattern_tracker.sources.schemas import Source


@pytest.fixture
def sample_source() -> Source:
    """A sample Source for testing."""
    return Source(
        id="src_000000000001",
        url="https://docs.example.com/changelog",
        name="Example Docs",
        category="framework",
        check_frequency="DAILY",
        priority=2,
        metadata={"team": "platform"},
    )


@pytest.fixture
def sample_db_row() -> dict:
    """A dict mimicking an asyncpg Record for a source."""
    return {
        "id": "src_000000000001",
        "url": "https://docs.example.com/changelog",
        "name": "Example Docs",
        "category": "framework",
        "check_frequency": "DAILY",
        "priority": 2,
        "active": True,
        "reliability": 0.8,
        "extract_patterns": True,
        "last_scraped": None,
        "last_changed": None,
        "error_count": 0,
        "last_error": None,
        "metadata": '{"team": "platform"}',
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
