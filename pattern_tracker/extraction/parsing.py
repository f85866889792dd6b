"""Parsing of untrusted AI responses.

The raw response is first classified into a tagged variant:

- ``ValidJson(items)``: a well-formed JSON array that is empty or holds at
  least one object was found (or an object carrying a ``patterns`` array)
- ``Malformed(raw_text)``: nothing usable; the caller degrades to a
  synthetic, auditable pattern

Only then are individual items validated into ``CandidatePattern``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from pattern_tracker.patterns.schemas import VALID_CATEGORIES

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 0.5

_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class ValidJson:
    """The response contained a JSON array of candidate items."""

    items: list[Any]
    kind: str = "valid_json"


@dataclass(frozen=True)
class Malformed:
    """No well-formed JSON array could be located."""

    raw_text: str
    kind: str = "malformed"


ParsedResponse = Union[ValidJson, Malformed]


def _is_candidate_array(value: Any) -> bool:
    # Scalar-only arrays are bracketed prose such as "see [1]"
    return isinstance(value, list) and (
        not value or any(isinstance(item, dict) for item in value)
    )


def classify_response(raw: str | None) -> ParsedResponse:
    """Locate the first JSON array of candidate objects in ``raw``."""
    text = (raw or "").strip()
    if not text:
        return Malformed(raw_text="")

    # A bare object wrapping the array, e.g. {"patterns": [...]}
    if text.startswith("{"):
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict) and isinstance(obj.get("patterns"), list):
            return ValidJson(items=obj["patterns"])

    start = text.find("[")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if _is_candidate_array(value):
            return ValidJson(items=value)
        start = text.find("[", start + 1)

    return Malformed(raw_text=text)


class CandidatePattern(BaseModel):
    """One candidate pattern as returned by the AI collaborator."""

    name: str = Field(default="Unnamed Pattern", max_length=500)
    description: str = ""
    category: str = "OTHER"
    confidence: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)
    relevance: float = Field(default=DEFAULT_SCORE, ge=0.0, le=1.0)
    examples: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Unnamed Pattern"
        return str(value).strip()[:500]

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> str:
        normalized = str(value or "").strip().upper().replace(" ", "_").replace("-", "_")
        return normalized if normalized in VALID_CATEGORIES else "OTHER"

    @field_validator("confidence", "relevance", mode="before")
    @classmethod
    def _score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return DEFAULT_SCORE
        if score != score:  # NaN
            return DEFAULT_SCORE
        return max(0.0, min(1.0, score))

    @field_validator("examples", "tags", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(v) for v in value if v is not None]
        return []


def validate_items(items: list[Any]) -> tuple[list[CandidatePattern], int]:
    """Validate raw items. Returns (candidates, failed_count)."""
    candidates: list[CandidatePattern] = []
    failed = 0
    for item in items:
        if not isinstance(item, dict):
            failed += 1
            continue
        data = dict(item)
        if "name" not in data and "pattern" in data:
            data["name"] = data.pop("pattern")
        try:
            candidates.append(CandidatePattern.model_validate(data))
        except ValidationError as e:
            logger.warning("Dropping invalid candidate pattern: %s", e)
            failed += 1
    return candidates, failed


def fallback_candidate(raw_text: str, max_chars: int = 500) -> CandidatePattern:
    """Synthetic pattern recorded when the response could not be parsed."""
    return CandidatePattern(
        name="Content Analysis",
        description=raw_text[:max_chars],
        category="OTHER",
        confidence=DEFAULT_SCORE,
        relevance=DEFAULT_SCORE,
        tags=["ai-generated", "unparsed-response"],
    )
