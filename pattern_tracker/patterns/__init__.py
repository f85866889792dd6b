"""Pattern store, review workflow, usage tracking and export."""

from pattern_tracker.patterns.config import PatternsConfig
from pattern_tracker.patterns.export import patterns_from_json, render
from pattern_tracker.patterns.repository import PatternRepository, ReviewRepository
from pattern_tracker.patterns.review import (
    ReviewOutcome,
    ReviewState,
    ReviewWorkflow,
    fold_reviews,
)
from pattern_tracker.patterns.schemas import Pattern, PatternFilter, Review, UsageEvent
from pattern_tracker.patterns.usage import UsageTracker

__all__ = [
    "Pattern",
    "PatternFilter",
    "PatternRepository",
    "PatternsConfig",
    "Review",
    "ReviewOutcome",
    "ReviewRepository",
    "ReviewState",
    "ReviewWorkflow",
    "UsageEvent",
    "UsageTracker",
    "fold_reviews",
    "patterns_from_json",
    "render",
]
