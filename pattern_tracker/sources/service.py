"""Operator operations on the source registry: register, look up, disable, seed."""

import json
import logging
from pathlib import Path
from typing import Any

import asyncpg

from pattern_tracker.errors import NotFoundError, ValidationError
from pattern_tracker.sources.config import SourcesConfig
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.sources.schemas import Source
from pattern_tracker.storage.database import Database

logger = logging.getLogger(__name__)

BUNDLED_SEED = Path(__file__).parent / "data" / "seed_sources.json"


class SourcesService:
    """Registry access for the CLI.

    Malformed input becomes ValidationError and unknown ids NotFoundError,
    so callers only deal with the shared error taxonomy.
    """

    def __init__(self, database: Database, config: SourcesConfig | None = None) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

    def _build(self, fields: dict[str, Any]) -> Source:
        try:
            return Source(
                url=fields["url"],
                name=fields["name"],
                category=fields.get("category") or "general",
                check_frequency=str(fields.get("check_frequency") or "DAILY").upper(),
                priority=fields.get("priority", 0),
                active=fields.get("active", True),
                reliability=fields.get("reliability", self._config.default_reliability),
                extract_patterns=fields.get("extract_patterns", True),
                metadata=fields.get("metadata") or {},
            )
        except KeyError as e:
            raise ValidationError(f"Source is missing required field {e.args[0]!r}") from e
        except ValueError as e:
            raise ValidationError(str(e)) from e

    async def add_source(
        self,
        url: str,
        name: str,
        category: str = "general",
        check_frequency: str = "DAILY",
        priority: int = 0,
        extract_patterns: bool = True,
        metadata: dict | None = None,
    ) -> Source:
        source = self._build({
            "url": url,
            "name": name,
            "category": category,
            "check_frequency": check_frequency,
            "priority": priority,
            "extract_patterns": extract_patterns,
            "metadata": metadata,
        })
        try:
            created = await self._repo.create(source)
        except asyncpg.UniqueViolationError as e:
            raise ValidationError(f"Source name already exists: {name}") from e

        logger.info("Registered source %s (%s)", created.id, created.name)
        return created

    async def get_source(self, source_id: str) -> Source:
        source = await self._repo.get(source_id)
        if source is None:
            raise NotFoundError("Source", source_id)
        return source

    async def deactivate(self, source_id: str) -> bool:
        """Stop monitoring a source. Rows are kept so updates stay attributable."""
        await self.get_source(source_id)
        return await self._repo.deactivate(source_id)

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Upsert every entry of a JSON seed list, keyed on source name.

        Falls back to ``SOURCES_SEED_FILE`` and then the bundled list. An
        invalid entry rejects the whole file before anything is written.
        """
        seed_path = path or self._config.seed_file or BUNDLED_SEED
        entries = json.loads(Path(seed_path).read_text(encoding="utf-8"))
        if not isinstance(entries, list):
            raise ValidationError(f"Seed file {seed_path} must hold a JSON array")

        sources = []
        for index, entry in enumerate(entries):
            try:
                sources.append(self._build(entry))
            except ValidationError as e:
                raise ValidationError(f"Seed entry {index} in {seed_path}: {e}") from e

        count = await self._repo.bulk_upsert(sources)
        logger.info("Seeded %d sources from %s", count, seed_path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed once, on a fresh database, when ``seed_on_init`` is on."""
        if not self._config.seed_on_init:
            return
        if await self._repo.count():
            return
        logger.info("Sources table empty, seeding")
        await self.seed_from_json()
