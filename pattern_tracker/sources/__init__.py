"""Source registry: monitored knowledge sources and their reliability."""

from pattern_tracker.sources.config import SourcesConfig
from pattern_tracker.sources.reliability import FetchOutcome, next_reliability
from pattern_tracker.sources.repository import SourcesRepository
from pattern_tracker.sources.schemas import Source
from pattern_tracker.sources.service import SourcesService

__all__ = [
    "FetchOutcome",
    "Source",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
    "next_reliability",
]
