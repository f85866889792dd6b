"""Content fetcher contract and the static HTTP implementation."""

from pattern_tracker.fetcher.base import ContentFetcher
from pattern_tracker.fetcher.config import FetcherConfig
from pattern_tracker.fetcher.http import HttpContentFetcher
from pattern_tracker.fetcher.schemas import Snapshot

__all__ = ["ContentFetcher", "FetcherConfig", "HttpContentFetcher", "Snapshot"]
