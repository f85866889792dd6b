"""Tests for pattern, review and usage schemas."""

import pytest

from pattern_tracker.patterns.schemas import (
    CRITICAL_CATEGORIES,
    Pattern,
    PatternFilter,
    Review,
    UsageEvent,
)


class TestPattern:
    def test_defaults(self) -> None:
        p = Pattern(source_id="src_1", name="N", description="D")
        assert p.id.startswith("pat_") and len(p.id) == 16
        assert p.status == "PENDING"
        assert p.category == "OTHER"
        assert p.usage_count == 0

    def test_invalid_category(self) -> None:
        with pytest.raises(ValueError, match="Invalid category"):
            Pattern(source_id="src_1", name="N", description="D", category="DEPRECATION")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Invalid status"):
            Pattern(source_id="src_1", name="N", description="D", status="ARCHIVED")

    @pytest.mark.parametrize("field", ["confidence", "relevance"])
    def test_scores_bounded(self, field: str) -> None:
        with pytest.raises(ValueError, match=field):
            Pattern(source_id="src_1", name="N", description="D", **{field: 1.5})

    def test_name_required(self) -> None:
        with pytest.raises(ValueError):
            Pattern(source_id="src_1", name="", description="D")

    def test_tags_and_examples(self, make_pattern) -> None:
        p = make_pattern()
        assert p.tags == ["async", "io"]
        assert p.examples == ["await client.connect()"]
        assert make_pattern(metadata={}).tags == []

    def test_to_dict(self, make_pattern) -> None:
        d = make_pattern().to_dict()
        assert d["extracted_at"] == "2025-01-02T00:00:00+00:00"
        assert d["approved_at"] is None


def test_critical_categories() -> None:
    assert CRITICAL_CATEGORIES == {"BREAKING_CHANGE", "API_CHANGE"}


class TestReview:
    def test_valid(self) -> None:
        r = Review(pattern_id="pat_1", reviewer_id="alice", action="APPROVE")
        assert r.id.startswith("rev_")

    def test_reviewer_required(self) -> None:
        with pytest.raises(ValueError, match="reviewer_id"):
            Review(pattern_id="pat_1", reviewer_id="", action="APPROVE")

    def test_unknown_action(self) -> None:
        with pytest.raises(ValueError, match="Invalid action"):
            Review(pattern_id="pat_1", reviewer_id="alice", action="ESCALATE")


class TestUsageEvent:
    def test_valid(self) -> None:
        e = UsageEvent(pattern_id="pat_1", action="copied")
        assert e.id.startswith("use_")
        assert e.to_dict()["context"] == {}

    def test_unknown_action(self) -> None:
        with pytest.raises(ValueError, match="Invalid usage action"):
            UsageEvent(pattern_id="pat_1", action="liked")


class TestPatternFilter:
    def test_defaults(self) -> None:
        flt = PatternFilter()
        assert flt.limit == 50 and flt.offset == 0

    def test_rejects_unknown_status(self) -> None:
        with pytest.raises(ValueError):
            PatternFilter(status="DONE")

    def test_rejects_bad_limit(self) -> None:
        with pytest.raises(ValueError):
            PatternFilter(limit=0)
