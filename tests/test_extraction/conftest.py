"""Shared fixtures for extraction tests."""

import json
from datetime import datetime, timezone

import pytest

from pattern_tracker.extraction.config import ExtractionConfig
from pattern_tracker.updates.schemas import Update


class FakeAIClient:
    """AI collaborator returning canned responses."""

    model = "test-model"

    def __init__(self, response: str = "[]", error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, prompt: str) -> str:
        self.calls.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_client() -> FakeAIClient:
    return FakeAIClient(
        json.dumps([
            {
                "pattern": "Await connect()",
                "description": "connect() is now a coroutine and must be awaited.",
                "category": "BREAKING_CHANGE",
                "confidence": 0.9,
                "relevance": 0.8,
                "examples": ["await client.connect()"],
                "tags": ["async"],
            },
            {
                "name": "Use retries",
                "description": "Enable retries for flaky networks.",
                "category": "best practice",
            },
        ])
    )


@pytest.fixture
def extraction_config() -> ExtractionConfig:
    return ExtractionConfig(max_content_chars=500, fallback_description_chars=50)


@pytest.fixture
def source_row() -> dict:
    return {
        "id": "src_000000000001",
        "url": "https://docs.example.com/changelog",
        "name": "Example Docs",
        "category": "framework",
        "check_frequency": "DAILY",
        "priority": 3,
        "active": True,
        "reliability": 0.8,
        "extract_patterns": True,
        "last_scraped": None,
        "last_changed": None,
        "error_count": 0,
        "last_error": None,
        "metadata": {},
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def make_update_row():
    def _make(processed: bool = False, **overrides) -> dict:
        row = {
            "id": "upd_000000000001",
            "source_id": "src_000000000001",
            "content": json.dumps({"markdown": "# v2\n\nconnect() is async now."}),
            "content_hash": "abc",
            "changed": True,
            "change_type": "MAJOR",
            "processed": processed,
            "patterns_found": 0,
            "scraped_at": datetime(2025, 1, 2, tzinfo=timezone.utc),
            "processed_at": None,
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def sample_update() -> Update:
    return Update(
        id="upd_000000000001",
        source_id="src_000000000001",
        content={"markdown": "# v2\n\nconnect() is async now."},
        content_hash="abc",
        changed=True,
        change_type="MAJOR",
    )
