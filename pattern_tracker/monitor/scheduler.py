"""
Scheduler: decides which sources a monitoring run checks.

Selection modes:
- frequency tier: active sources of that tier whose last check is older
  than the tier interval (1h / 24h / 7d)
- explicit ids: the active subset of the given ids
- all active: every active source, highest priority first
- default: active sources not checked within ``stale_after_hours``

Every mode is capped at ``max_limit`` sources to bound run latency.
"""

import logging
from datetime import datetime, timedelta

from pattern_tracker.errors import ValidationError
from pattern_tracker.monitor.config import MonitorConfig
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.sources.schemas import FREQUENCY_INTERVALS, Source

logger = logging.getLogger(__name__)

_NEVER = datetime.min


def is_due(source: Source, now: datetime) -> bool:
    """Whether a source should be checked at ``now``."""
    if not source.active:
        return False
    if source.last_scraped is None:
        return True
    return now - source.last_scraped >= source.interval


def order_due(
    sources: list[Source],
    now: datetime,
    limit: int,
    frequency: str | None = None,
) -> list[Source]:
    """In-memory equivalent of the due query.

    Never-checked sources first, then the stalest, then higher priority.
    """
    due = [
        s for s in sources
        if is_due(s, now) and (frequency is None or s.check_frequency == frequency)
    ]

    def sort_key(s: Source) -> tuple:
        scraped = s.last_scraped
        return (
            scraped is not None,
            scraped.replace(tzinfo=None) if scraped else _NEVER,
            -s.priority,
            s.name,
        )

    return sorted(due, key=sort_key)[:limit]


class Scheduler:
    """Selects sources for a monitoring run."""

    def __init__(
        self,
        repository: SourcesRepository,
        config: MonitorConfig | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or MonitorConfig()

    def effective_limit(self, limit: int | None) -> int:
        """Apply the default and the hard cap."""
        if limit is None:
            return min(self._config.default_limit, self._config.max_limit)
        if limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}")
        return min(limit, self._config.max_limit)

    async def due_sources(self, frequency: str, limit: int | None = None) -> list[Source]:
        """Active sources of a tier whose interval has elapsed."""
        frequency = frequency.upper()
        if frequency not in FREQUENCY_INTERVALS:
            raise ValidationError(
                f"Invalid frequency {frequency!r}. "
                f"Must be one of: {sorted(FREQUENCY_INTERVALS)}"
            )
        return await self._repo.list_due(
            frequency, FREQUENCY_INTERVALS[frequency], self.effective_limit(limit)
        )

    async def select_sources(
        self,
        source_ids: list[str] | None = None,
        all_active: bool = False,
        limit: int | None = None,
    ) -> list[Source]:
        """Manual selection: explicit ids, all active, or stale sources."""
        if source_ids:
            # Explicit ids default to the hard cap rather than the small default batch
            capped = self.effective_limit(limit or self._config.max_limit)
            return await self._repo.get_active_by_ids(list(source_ids), capped)
        if all_active:
            return await self._repo.list_active(
                self.effective_limit(limit or self._config.max_limit)
            )
        return await self._repo.list_stale(
            timedelta(hours=self._config.stale_after_hours),
            self.effective_limit(limit),
        )
