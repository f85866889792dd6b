"""
Content fetcher interface.

The monitor only depends on this contract: given a URL, return a
normalized Snapshot or raise FetchError. Bounded concurrency and
timeouts are the fetcher's own concern.
"""

from abc import ABC, abstractmethod

from pattern_tracker.fetcher.schemas import Snapshot


class ContentFetcher(ABC):
    """Abstract base for content fetchers."""

    @abstractmethod
    async def fetch(self, url: str) -> Snapshot:
        """
        Fetch and normalize a page.

        Raises:
            FetchError: On network errors, timeouts or non-2xx responses.
        """

    async def close(self) -> None:
        """Release any held resources."""
