"""Update store: append-only snapshot log."""

from pattern_tracker.updates.repository import UpdatesRepository
from pattern_tracker.updates.schemas import Update

__all__ = ["Update", "UpdatesRepository"]
