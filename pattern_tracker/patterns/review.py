"""Review workflow.

A pattern's moderation state is a pure fold over its ordered review log:

- status mirrors the mapped action of the most recent review
  (APPROVE → APPROVED, REJECT → REJECTED, REFINE/REQUEST_INFO →
  NEEDS_REFINEMENT), or PENDING when there are no reviews
- approved_at / approved_by come from the most recent APPROVE and are
  kept after a later non-approving review

Any state can be reached from any other; a rejected pattern can be
re-approved. Authorization is the caller's concern.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from pattern_tracker.errors import NotFoundError, ValidationError
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.patterns.repository import PatternRepository, ReviewRepository
from pattern_tracker.patterns.schemas import ACTION_TO_STATUS, Pattern, Review
from pattern_tracker.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewState:
    """Moderation fields derived from the review log."""

    status: str = "PENDING"
    approved_at: datetime | None = None
    approved_by: str | None = None


def fold_reviews(reviews: Iterable[Review]) -> ReviewState:
    """Fold reviews (oldest first) into the pattern's moderation state."""
    state = ReviewState()
    for review in reviews:
        if review.action == "APPROVE":
            state = ReviewState(
                status="APPROVED",
                approved_at=review.created_at,
                approved_by=review.reviewer_id,
            )
        else:
            state = ReviewState(
                status=ACTION_TO_STATUS[review.action],
                approved_at=state.approved_at,
                approved_by=state.approved_by,
            )
    return state


@dataclass
class ReviewOutcome:
    """Updated pattern plus the review that produced it."""

    pattern: Pattern
    review: Review

    def to_dict(self) -> dict[str, Any]:
        return {"pattern": self.pattern.to_dict(), "review": self.review.to_dict()}


class ReviewWorkflow:
    """Applies moderator decisions to patterns."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._patterns = PatternRepository(database)
        self._reviews = ReviewRepository(database)

    async def review(
        self,
        pattern_id: str,
        action: str,
        reviewer_id: str,
        feedback: str | None = None,
        metadata: dict | None = None,
    ) -> ReviewOutcome:
        """Append a review and re-derive the pattern's state.

        Raises:
            ValidationError: Unknown action or missing reviewer.
            NotFoundError: Unknown pattern.
        """
        try:
            review = Review(
                pattern_id=pattern_id,
                reviewer_id=reviewer_id,
                action=(action or "").upper(),
                feedback=feedback,
                metadata=metadata or {},
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        async with self._db.transaction() as conn:
            # Row lock serializes concurrent reviews of one pattern
            if await self._patterns.lock(pattern_id, conn) is None:
                raise NotFoundError("Pattern", pattern_id)

            stored = await self._reviews.append(review, conn=conn)
            history = await self._reviews.list_ordered(pattern_id, conn=conn)
            state = fold_reviews(history)
            pattern = await self._patterns.apply_review_state(
                pattern_id,
                state.status,
                state.approved_at,
                state.approved_by,
                conn=conn,
            )

        get_metrics().record_review(stored.action)
        logger.info(
            "Pattern %s reviewed by %s: %s -> %s",
            pattern_id, reviewer_id, stored.action, pattern.status,
        )
        return ReviewOutcome(pattern=pattern, review=stored)

    async def history(self, pattern_id: str, limit: int = 50) -> list[Review]:
        """Review log of a pattern, newest first."""
        if await self._patterns.get(pattern_id) is None:
            raise NotFoundError("Pattern", pattern_id)
        return await self._reviews.history(pattern_id, limit=limit)
