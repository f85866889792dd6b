"""Tests for AI response classification and item validation."""

import math

import pytest

from pattern_tracker.extraction.parsing import (
    CandidatePattern,
    Malformed,
    ValidJson,
    classify_response,
    fallback_candidate,
    validate_items,
)


class TestClassifyResponse:
    def test_bare_array(self) -> None:
        parsed = classify_response('[{"pattern": "A"}]')
        assert isinstance(parsed, ValidJson)
        assert parsed.items == [{"pattern": "A"}]
        assert parsed.kind == "valid_json"

    def test_array_inside_prose(self) -> None:
        raw = 'Here are the patterns:\n```json\n[{"pattern": "A"}, {"pattern": "B"}]\n```\nDone.'
        parsed = classify_response(raw)
        assert isinstance(parsed, ValidJson)
        assert len(parsed.items) == 2

    def test_skips_non_json_brackets(self) -> None:
        raw = 'See [the docs] for details. [{"pattern": "A"}]'
        parsed = classify_response(raw)
        assert isinstance(parsed, ValidJson)
        assert parsed.items == [{"pattern": "A"}]

    def test_first_array_of_objects_wins(self) -> None:
        parsed = classify_response('See [1]. [{"pattern": "A"}] and [{"pattern": "B"}]')
        assert isinstance(parsed, ValidJson)
        assert parsed.items == [{"pattern": "A"}]

    def test_mixed_array_kept_for_item_validation(self) -> None:
        parsed = classify_response('[{"pattern": "A"}, "junk"]')
        assert isinstance(parsed, ValidJson)
        assert len(parsed.items) == 2

    def test_object_with_patterns_key(self) -> None:
        parsed = classify_response('{"patterns": [{"pattern": "A"}]}')
        assert isinstance(parsed, ValidJson)
        assert parsed.items == [{"pattern": "A"}]

    def test_empty_array_is_valid(self) -> None:
        parsed = classify_response("[]")
        assert isinstance(parsed, ValidJson)
        assert parsed.items == []

    @pytest.mark.parametrize(
        "raw",
        ["not valid json", "", None, "[unclosed", '{"a": 1}', "see [1] for details", "[1] and [2, 3]"],
    )
    def test_malformed(self, raw) -> None:
        parsed = classify_response(raw)
        assert isinstance(parsed, Malformed)
        assert parsed.kind == "malformed"


class TestCandidatePattern:
    def test_unknown_category_becomes_other(self) -> None:
        assert CandidatePattern(category="MISC").category == "OTHER"

    def test_category_normalized(self) -> None:
        assert CandidatePattern(category="best practice").category == "BEST_PRACTICE"
        assert CandidatePattern(category="api-change").category == "API_CHANGE"

    def test_scores_default_and_clamp(self) -> None:
        candidate = CandidatePattern(confidence=None, relevance=7)
        assert candidate.confidence == 0.5
        assert candidate.relevance == 1.0
        assert CandidatePattern(confidence=-3).confidence == 0.0
        assert CandidatePattern(confidence="high").confidence == 0.5
        assert CandidatePattern(confidence=math.nan).confidence == 0.5

    def test_blank_name(self) -> None:
        assert CandidatePattern(name="  ").name == "Unnamed Pattern"

    def test_string_lists_coerced(self) -> None:
        candidate = CandidatePattern(examples="one", tags=["a", None, 3])
        assert candidate.examples == ["one"]
        assert candidate.tags == ["a", "3"]


class TestValidateItems:
    def test_counts_non_objects_as_failed(self) -> None:
        candidates, failed = validate_items([{"pattern": "A"}, "junk", 42, None])
        assert [c.name for c in candidates] == ["A"]
        assert failed == 3

    def test_name_takes_precedence_over_pattern(self) -> None:
        candidates, _ = validate_items([{"name": "N", "pattern": "P"}])
        assert candidates[0].name == "N"


class TestFallback:
    def test_fallback_candidate(self) -> None:
        candidate = fallback_candidate("x" * 800)
        assert candidate.name == "Content Analysis"
        assert candidate.category == "OTHER"
        assert len(candidate.description) == 500
        assert candidate.tags == ["ai-generated", "unparsed-response"]
        assert candidate.confidence == 0.5
        assert candidate.relevance == 0.5
