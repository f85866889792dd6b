"""Reliability feedback loop.

Every fetch attempt nudges the source's reliability score:

- success with changed content:   +0.01
- success with unchanged content: -0.001
- failure:                        -0.05

The score is always clamped to [0, 1]. It is advisory only and never
prevents a scheduled check. SourcesRepository applies the same rule in
SQL against the stored value so concurrent runs compose.
"""

import enum

RELIABILITY_FLOOR = 0.0
RELIABILITY_CEILING = 1.0


class FetchOutcome(str, enum.Enum):
    """Result of one fetch attempt, as seen by the feedback loop."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


RELIABILITY_DELTAS: dict[FetchOutcome, float] = {
    FetchOutcome.CHANGED: 0.01,
    FetchOutcome.UNCHANGED: -0.001,
    FetchOutcome.FAILED: -0.05,
}


def clamp_reliability(value: float) -> float:
    """Clamp a reliability score to [0, 1]."""
    return max(RELIABILITY_FLOOR, min(RELIABILITY_CEILING, value))


def next_reliability(current: float, outcome: FetchOutcome) -> float:
    """Compute the reliability after a fetch attempt.

    Rounded to 6 places so repeated small decrements do not accumulate
    float noise in the stored value.
    """
    return round(clamp_reliability(current + RELIABILITY_DELTAS[outcome]), 6)
