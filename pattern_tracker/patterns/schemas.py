"""Schema definitions for patterns, reviews and usage events.

Maps 1:1 to the ``patterns``, ``pattern_reviews`` and ``pattern_usage``
tables. Reviews and usage events are append-only; a pattern's status
and usage counters are derived from them.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

VALID_CATEGORIES: frozenset[str] = frozenset({
    "API_CHANGE",
    "BEST_PRACTICE",
    "WARNING",
    "EXAMPLE",
    "CONCEPT",
    "PERFORMANCE",
    "SECURITY",
    "BREAKING_CHANGE",
    "OTHER",
})

CRITICAL_CATEGORIES: frozenset[str] = frozenset({
    "BREAKING_CHANGE",
    "API_CHANGE",
})

VALID_STATUSES: frozenset[str] = frozenset({
    "PENDING",
    "APPROVED",
    "REJECTED",
    "NEEDS_REFINEMENT",
})

VALID_REVIEW_ACTIONS: frozenset[str] = frozenset({
    "APPROVE",
    "REJECT",
    "REFINE",
    "REQUEST_INFO",
})

# Status a pattern takes after its most recent review.
ACTION_TO_STATUS: dict[str, str] = {
    "APPROVE": "APPROVED",
    "REJECT": "REJECTED",
    "REFINE": "NEEDS_REFINEMENT",
    "REQUEST_INFO": "NEEDS_REFINEMENT",
}

VALID_USAGE_ACTIONS: frozenset[str] = frozenset({
    "viewed",
    "applied",
    "exported",
    "shared",
    "copied",
    "referenced",
})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Pattern:
    """A candidate or approved engineering pattern.

    Attributes:
        id: Identifier (pat_{uuid_hex[:12]}).
        source_id: Source the pattern was extracted from.
        update_id: Snapshot it was extracted from (None for manual content).
        name: Short pattern name.
        description: Full description.
        category: One of VALID_CATEGORIES.
        confidence: Extractor confidence in [0, 1].
        relevance: Estimated relevance in [0, 1].
        status: Moderation state, derived from the review log.
        metadata: Free-form payload (examples, tags, model).
        extracted_by: Who produced the candidate ("ai" for the extractor).
        approved_at: Time of the most recent approval.
        approved_by: Reviewer of the most recent approval.
        usage_count: Cached count of usage events.
        last_used_at: Cached time of the latest usage event.
    """

    source_id: str
    name: str
    description: str
    category: str = "OTHER"
    confidence: float = 0.5
    relevance: float = 0.5
    id: str = field(default_factory=lambda: f"pat_{uuid.uuid4().hex[:12]}")
    update_id: str | None = None
    status: str = "PENDING"
    metadata: dict[str, Any] = field(default_factory=dict)
    extracted_by: str = "ai"
    extracted_at: datetime = field(default_factory=_utc_now)
    approved_at: datetime | None = None
    approved_by: str | None = None
    usage_count: int = 0
    last_used_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Pattern name is required")
        if self.category not in VALID_CATEGORIES:
            raise ValueError(
                f"Invalid category {self.category!r}. "
                f"Must be one of: {sorted(VALID_CATEGORIES)}"
            )
        if self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_STATUSES)}"
            )
        for name in ("confidence", "relevance"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"Invalid {name} {value}. Must be between 0 and 1.")

    @property
    def tags(self) -> list[str]:
        return list(self.metadata.get("tags") or [])

    @property
    def examples(self) -> list[str]:
        return list(self.metadata.get("examples") or [])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "update_id": self.update_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "confidence": self.confidence,
            "relevance": self.relevance,
            "status": self.status,
            "metadata": self.metadata,
            "extracted_by": self.extracted_by,
            "extracted_at": _iso(self.extracted_at),
            "approved_at": _iso(self.approved_at),
            "approved_by": self.approved_by,
            "usage_count": self.usage_count,
            "last_used_at": _iso(self.last_used_at),
        }


@dataclass
class Review:
    """An immutable moderation event on a pattern."""

    pattern_id: str
    reviewer_id: str
    action: str
    id: str = field(default_factory=lambda: f"rev_{uuid.uuid4().hex[:12]}")
    feedback: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utc_now)
    seq: int | None = None

    def __post_init__(self) -> None:
        if not self.reviewer_id:
            raise ValueError("reviewer_id is required")
        if self.action not in VALID_REVIEW_ACTIONS:
            raise ValueError(
                f"Invalid action {self.action!r}. "
                f"Must be one of: {sorted(VALID_REVIEW_ACTIONS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pattern_id": self.pattern_id,
            "reviewer_id": self.reviewer_id,
            "action": self.action,
            "feedback": self.feedback,
            "metadata": self.metadata,
            "created_at": _iso(self.created_at),
        }


@dataclass
class UsageEvent:
    """A record that a pattern was consumed."""

    pattern_id: str
    action: str
    id: str = field(default_factory=lambda: f"use_{uuid.uuid4().hex[:12]}")
    user_id: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None
    project_id: str | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.action not in VALID_USAGE_ACTIONS:
            raise ValueError(
                f"Invalid usage action {self.action!r}. "
                f"Must be one of: {sorted(VALID_USAGE_ACTIONS)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pattern_id": self.pattern_id,
            "user_id": self.user_id,
            "action": self.action,
            "context": self.context,
            "session_id": self.session_id,
            "project_id": self.project_id,
            "created_at": _iso(self.created_at),
        }


@dataclass
class PatternFilter:
    """Filters shared by pattern listing and export."""

    status: str | None = None
    category: str | None = None
    source_id: str | None = None
    pattern_ids: list[str] | None = None
    min_confidence: float | None = None
    min_relevance: float | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    limit: int = 50
    offset: int = 0

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_STATUSES)}"
            )
        if self.category is not None and self.category not in VALID_CATEGORIES:
            raise ValueError(
                f"Invalid category {self.category!r}. "
                f"Must be one of: {sorted(VALID_CATEGORIES)}"
            )
        if self.limit < 1:
            raise ValueError(f"Invalid limit {self.limit}. Must be >= 1.")
