"""Data models for the source registry."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

VALID_FREQUENCIES: frozenset[str] = frozenset({
    "HOURLY",
    "DAILY",
    "WEEKLY",
})

# How stale a source must be before the scheduler considers it due.
FREQUENCY_INTERVALS: dict[str, timedelta] = {
    "HOURLY": timedelta(hours=1),
    "DAILY": timedelta(hours=24),
    "WEEKLY": timedelta(days=7),
}

DEFAULT_RELIABILITY = 0.8


@dataclass
class Source:
    """A monitored knowledge source (documentation site, changelog, blog).

    Attributes:
        url: Page fetched on every check.
        name: Unique human-readable name.
        category: Free-form grouping (e.g. "framework", "database").
        check_frequency: Scheduling tier (HOURLY, DAILY, WEEKLY).
        priority: Higher values are checked and extracted first.
        active: Soft-disable flag; inactive sources are never scheduled.
        reliability: Advisory score in [0, 1] maintained by the feedback loop.
        last_scraped: Time of the last fetch attempt that succeeded.
        extract_patterns: Whether changed snapshots are queued for extraction.
        error_count: Consecutive fetch failures, reset on success.
        last_error: Message of the most recent fetch failure.
        last_changed: Time of the last detected content change.
    """

    url: str
    name: str
    category: str = "general"
    check_frequency: str = "DAILY"
    priority: int = 0
    active: bool = True
    reliability: float = DEFAULT_RELIABILITY
    extract_patterns: bool = True
    id: str = field(default_factory=lambda: f"src_{uuid.uuid4().hex[:12]}")
    last_scraped: datetime | None = None
    last_changed: datetime | None = None
    error_count: int = 0
    last_error: str | None = None
    metadata: dict = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("Source url is required")
        if not self.name:
            raise ValueError("Source name is required")
        if self.check_frequency not in VALID_FREQUENCIES:
            raise ValueError(
                f"Invalid check_frequency {self.check_frequency!r}. "
                f"Must be one of: {sorted(VALID_FREQUENCIES)}"
            )
        if self.priority < 0:
            raise ValueError(f"Invalid priority {self.priority}. Must be >= 0.")
        if not (0.0 <= self.reliability <= 1.0):
            raise ValueError(
                f"Invalid reliability {self.reliability}. Must be between 0 and 1."
            )

    @property
    def interval(self) -> timedelta:
        """Minimum time between two checks of this source."""
        return FREQUENCY_INTERVALS[self.check_frequency]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "category": self.category,
            "check_frequency": self.check_frequency,
            "priority": self.priority,
            "active": self.active,
            "reliability": self.reliability,
            "extract_patterns": self.extract_patterns,
            "last_scraped": self.last_scraped.isoformat() if self.last_scraped else None,
            "last_changed": self.last_changed.isoformat() if self.last_changed else None,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "metadata": self.metadata,
        }
