"""
Change detector.

Compares a fresh snapshot with the latest stored one by SHA-256 of the
normalized body (NFC, collapsed whitespace). No prior snapshot means
changed (cold start). Every call appends exactly one Update, changed or
not, so the full history is kept.

The magnitude of a change is classified from the word-count delta:
more than 30% is MAJOR, more than 10% MINOR, anything else PATCH.
"""

import hashlib
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any

from pattern_tracker.fetcher.schemas import Snapshot
from pattern_tracker.sources.schemas import Source
from pattern_tracker.updates.repository import UpdatesRepository
from pattern_tracker.updates.schemas import Update

logger = logging.getLogger(__name__)

MAJOR_THRESHOLD = 0.3
MINOR_THRESHOLD = 0.1

_WHITESPACE = re.compile(r"\s+")


def normalize_content(text: str) -> str:
    """Canonical form used for hashing."""
    return _WHITESPACE.sub(" ", unicodedata.normalize("NFC", text or "")).strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(normalize_content(text).encode("utf-8")).hexdigest()


def classify_change(previous: str | None, current: str) -> str:
    """MAJOR / MINOR / PATCH from the relative word-count delta."""
    if previous is None:
        return "MAJOR"
    old_words = len(normalize_content(previous).split())
    new_words = len(normalize_content(current).split())
    if old_words == 0:
        return "MAJOR" if new_words else "PATCH"
    ratio = abs(new_words - old_words) / old_words
    if ratio > MAJOR_THRESHOLD:
        return "MAJOR"
    if ratio > MINOR_THRESHOLD:
        return "MINOR"
    return "PATCH"


@dataclass
class ChangeDetection:
    """Outcome of one detection: the stored update and whether it changed."""

    changed: bool
    update: Update
    change_type: str | None = None
    previous_update_id: str | None = None


class ChangeDetector:
    """Appends snapshots and flags those that differ from their predecessor."""

    def __init__(self, updates: UpdatesRepository) -> None:
        self._updates = updates

    async def detect(
        self, source: Source, snapshot: Snapshot, conn: Any = None
    ) -> ChangeDetection:
        body = snapshot.body
        digest = content_hash(body)
        previous = await self._updates.get_latest(source.id, conn=conn)

        if previous is None:
            changed, change_type = True, "MAJOR"
        elif previous.content_hash != digest:
            previous_body = previous.content.get("markdown") or previous.content.get("text") or ""
            changed, change_type = True, classify_change(previous_body, body)
        else:
            changed, change_type = False, None

        update = await self._updates.create(
            Update(
                source_id=source.id,
                content=snapshot.to_content(),
                content_hash=digest,
                changed=changed,
                change_type=change_type,
            ),
            conn=conn,
        )
        logger.debug(
            "Source %s: changed=%s change_type=%s", source.id, changed, change_type
        )
        return ChangeDetection(
            changed=changed,
            update=update,
            change_type=change_type,
            previous_update_id=previous.id if previous else None,
        )
