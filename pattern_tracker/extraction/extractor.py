"""Pattern extractor.

Turns a snapshot into candidate Patterns by delegating to the AI
collaborator. The collaborator's output is never trusted as typed: it is
classified as ValidJson or Malformed, and a malformed response degrades to
one synthetic OTHER pattern so the failure stays auditable.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pattern_tracker.extraction.config import ExtractionConfig
from pattern_tracker.extraction.llm_client import AIClient
from pattern_tracker.extraction.parsing import (
    Malformed,
    classify_response,
    fallback_candidate,
    validate_items,
)
from pattern_tracker.extraction.prompts import build_prompts
from pattern_tracker.observability.metrics import get_metrics
from pattern_tracker.patterns.schemas import Pattern

logger = logging.getLogger(__name__)


@dataclass
class SourceContext:
    """What the extractor knows about where the content came from."""

    source_id: str
    name: str = "Direct Content"
    category: str = "MANUAL"
    update_id: str | None = None


@dataclass
class ExtractionOutput:
    """Result of one extraction call.

    Attributes:
        patterns: Candidate patterns, all PENDING.
        parsed_kind: "valid_json" or "malformed".
        failed: Items in a valid array that could not be validated.
    """

    patterns: list[Pattern] = field(default_factory=list)
    parsed_kind: str = "valid_json"
    failed: int = 0


def snapshot_text(content: Any) -> str:
    """Text the extractor analyzes: markdown, else plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        for key in ("markdown", "text", "content"):
            value = content.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return json.dumps(content, default=str)


class PatternExtractor:
    """Derives candidate patterns from snapshot content.

    Args:
        client: AI collaborator (LLMClient in production).
        config: Extraction settings (content cap, fallback excerpt size).
    """

    def __init__(self, client: AIClient, config: ExtractionConfig | None = None) -> None:
        self._client = client
        self._config = config or ExtractionConfig()

    async def extract(self, content: Any, context: SourceContext) -> ExtractionOutput:
        """Extract candidate patterns from ``content``.

        Raises:
            ExtractionError: If the AI call fails or times out. No patterns
                are produced in that case.
        """
        metrics = get_metrics()
        system, prompt = build_prompts(
            snapshot_text(content),
            source_name=context.name,
            source_category=context.category,
            max_chars=self._config.max_content_chars,
        )

        start = time.monotonic()
        raw = await self._client.complete(system, prompt)
        metrics.extraction_latency.observe(time.monotonic() - start)

        parsed = classify_response(raw)
        if isinstance(parsed, Malformed):
            logger.warning(
                "Malformed AI response for source %s, recording fallback pattern",
                context.source_id,
            )
            metrics.malformed_responses.inc()
            candidates = [
                fallback_candidate(
                    parsed.raw_text, self._config.fallback_description_chars
                )
            ]
            failed = 0
        else:
            candidates, failed = validate_items(parsed.items)

        extracted_at = datetime.now(timezone.utc)
        patterns = [
            Pattern(
                source_id=context.source_id,
                update_id=context.update_id,
                name=c.name,
                description=c.description,
                category=c.category,
                confidence=c.confidence,
                relevance=c.relevance,
                status="PENDING",
                extracted_by="ai",
                extracted_at=extracted_at,
                metadata={
                    "examples": c.examples,
                    "tags": c.tags,
                    "model": self._client.model,
                    "extracted_at": extracted_at.isoformat(),
                },
            )
            for c in candidates
        ]
        return ExtractionOutput(
            patterns=patterns, parsed_kind=parsed.kind, failed=failed
        )
