"""Tests for SourcesService."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import asyncpg
import pytest

from pattern_tracker.errors import NotFoundError, ValidationError
from pattern_tracker.sources.config import SourcesConfig
from pattern_tracker.sources.service import SourcesService


class TestAddSource:
    @pytest.mark.asyncio
    async def test_creates_with_default_reliability(
        self, mock_database: AsyncMock, sample_db_row: dict
    ) -> None:
        mock_database.fetchrow.return_value = sample_db_row
        service = SourcesService(mock_database, SourcesConfig(default_reliability=0.7))

        source = await service.add_source(
            url="https://docs.example.com/changelog",
            name="Example Docs",
            check_frequency="daily",
        )

        assert source.name == "Example Docs"
        args = mock_database.fetchrow.call_args[0]
        assert args[5] == "DAILY"
        assert args[8] == 0.7

    @pytest.mark.asyncio
    async def test_invalid_frequency_is_validation_error(
        self, mock_database: AsyncMock
    ) -> None:
        service = SourcesService(mock_database)
        with pytest.raises(ValidationError):
            await service.add_source(url="https://a.example.com", name="A", check_frequency="YEARLY")
        mock_database.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_name_is_validation_error(
        self, mock_database: AsyncMock
    ) -> None:
        mock_database.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate")
        service = SourcesService(mock_database)
        with pytest.raises(ValidationError, match="already exists"):
            await service.add_source(url="https://a.example.com", name="A")


class TestLookup:
    @pytest.mark.asyncio
    async def test_get_missing_raises(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database)
        with pytest.raises(NotFoundError):
            await service.get_source("src_missing")

    @pytest.mark.asyncio
    async def test_deactivate_missing_raises(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database)
        with pytest.raises(NotFoundError):
            await service.deactivate("src_missing")


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_from_bundled_file(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database)

        count = await service.seed_from_json()

        assert count >= 1
        args = mock_database.execute.call_args[0]
        names = args[3]
        assert "Claude Code Docs" in names
        assert len(names) == len(set(names))

    @pytest.mark.asyncio
    async def test_seed_from_custom_file(
        self, mock_database: AsyncMock, tmp_path: Path
    ) -> None:
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps([
            {"name": "Custom", "url": "https://custom.example.com", "check_frequency": "weekly"},
        ]))
        service = SourcesService(mock_database)

        count = await service.seed_from_json(seed)

        assert count == 1
        args = mock_database.execute.call_args[0]
        assert args[5] == ["WEEKLY"]

    @pytest.mark.asyncio
    async def test_ensure_seeded_skips_when_populated(
        self, mock_database: AsyncMock
    ) -> None:
        mock_database.fetchval.return_value = 4
        service = SourcesService(mock_database)

        await service.ensure_seeded()

        mock_database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_seeded_disabled(self, mock_database: AsyncMock) -> None:
        service = SourcesService(mock_database, SourcesConfig(seed_on_init=False))
        await service.ensure_seeded()
        mock_database.fetchval.assert_not_called()

    @pytest.mark.asyncio
    async def test_seed_rejects_entry_without_url(
        self, mock_database: AsyncMock, tmp_path: Path
    ) -> None:
        seed = tmp_path / "seed.json"
        seed.write_text(json.dumps([
            {"name": "Good", "url": "https://good.example.com"},
            {"name": "NoUrl"},
        ]))
        service = SourcesService(mock_database)

        with pytest.raises(ValidationError, match="Seed entry 1"):
            await service.seed_from_json(seed)
        mock_database.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_seed_file_from_config(
        self, mock_database: AsyncMock, tmp_path: Path
    ) -> None:
        seed = tmp_path / "configured.json"
        seed.write_text(json.dumps([{"name": "Configured", "url": "https://c.example.com"}]))
        service = SourcesService(mock_database, SourcesConfig(seed_file=seed))

        assert await service.seed_from_json() == 1
        assert mock_database.execute.call_args[0][3] == ["Configured"]
