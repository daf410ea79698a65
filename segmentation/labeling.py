"""
RFV segment labeling.

Segments are assigned by evaluating rules in a fixed order; the first rule
whose three score ranges all contain the customer's scores wins. Rules are
plain data so deployments can reorder or retune them. No DB access.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

SEGMENT_CHAMPIONS = "champions"
SEGMENT_LOYAL = "loyal"
SEGMENT_POTENTIAL = "potential"
SEGMENT_AT_RISK = "at_risk"
SEGMENT_HIBERNATING = "hibernating"
SEGMENT_LOST = "lost"


@dataclass(frozen=True)
class SegmentRule:
    """
    Inclusive ``(low, high)`` score ranges for one segment.
    """

    segment: str
    recency: Tuple[int, int] = (1, 5)
    frequency: Tuple[int, int] = (1, 5)
    value: Tuple[int, int] = (1, 5)

    def matches(self, r: int, f: int, v: int) -> bool:
        return (
            self.recency[0] <= r <= self.recency[1]
            and self.frequency[0] <= f <= self.frequency[1]
            and self.value[0] <= v <= self.value[1]
        )


DEFAULT_SEGMENT_RULES: Tuple[SegmentRule, ...] = (
    SegmentRule(SEGMENT_CHAMPIONS, recency=(4, 5), frequency=(4, 5), value=(4, 5)),
    SegmentRule(SEGMENT_LOYAL, recency=(3, 5), frequency=(3, 5), value=(3, 5)),
    SegmentRule(SEGMENT_POTENTIAL, recency=(4, 5), frequency=(1, 3), value=(1, 3)),
    SegmentRule(SEGMENT_AT_RISK, recency=(1, 2), frequency=(3, 5), value=(3, 5)),
    SegmentRule(SEGMENT_HIBERNATING, recency=(1, 2), frequency=(1, 2), value=(2, 4)),
)


def classify_segment(
    r: int,
    f: int,
    v: int,
    rules: Sequence[SegmentRule] = DEFAULT_SEGMENT_RULES,
    fallback: str = SEGMENT_LOST,
) -> str:
    """
    Return the first matching segment for ``(r, f, v)``, else ``fallback``.
    """
    for rule in rules:
        if rule.matches(r, f, v):
            return rule.segment
    return fallback
