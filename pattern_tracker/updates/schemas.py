"""Schema for stored snapshots (updates).

Each row is one successful fetch of a source. Rows are immutable except
for the processing columns, and ``processed`` only ever moves from
False to True.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

VALID_CHANGE_TYPES: frozenset[str] = frozenset({
    "MAJOR",
    "MINOR",
    "PATCH",
})


@dataclass
class Update:
    """A timestamped snapshot of a source's content.

    Attributes:
        source_id: Owning source.
        content: Snapshot dict (url, title, text, markdown, links, ...).
        content_hash: SHA-256 of the normalized snapshot body.
        changed: Whether this snapshot differs from the previous one.
        change_type: Magnitude of the change when ``changed`` is True.
        processed: Set once extraction completes or is skipped.
        patterns_found: Patterns persisted from this snapshot.
    """

    source_id: str
    content: dict[str, Any]
    content_hash: str
    changed: bool
    id: str = field(default_factory=lambda: f"upd_{uuid.uuid4().hex[:12]}")
    change_type: str | None = None
    processed: bool = False
    patterns_found: int = 0
    scraped_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    processed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.change_type is not None and self.change_type not in VALID_CHANGE_TYPES:
            raise ValueError(
                f"Invalid change_type {self.change_type!r}. "
                f"Must be one of: {sorted(VALID_CHANGE_TYPES)}"
            )

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "source_id": self.source_id,
            "content_hash": self.content_hash,
            "changed": self.changed,
            "change_type": self.change_type,
            "processed": self.processed,
            "patterns_found": self.patterns_found,
            "scraped_at": self.scraped_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }
        if include_content:
            data["content"] = self.content
        return data
