"""Priority engine — WSJF-style ranking of backlog stories.

score = (business_value + urgency) / max(story_points, 1)

Everything here is pure: no database access, no caching. Scores are
recomputed from the live field values on every call, so a mutation of any
input field is reflected on the next read.
"""

from enum import Enum

# Tier thresholds are fixed; they are not configurable.
P1_THRESHOLD = 10.0
P2_THRESHOLD = 5.0


class PriorityTier(str, Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]


_TIER_LABELS = {
    PriorityTier.P1: "high",
    PriorityTier.P2: "medium",
    PriorityTier.P3: "low",
}


def _number(value) -> float:
    return float(value) if value is not None else 0.0


def compute_score(business_value, urgency, story_points) -> float:
    """Return the WSJF score of a story.

    Missing inputs count as 0. Missing, zero or negative story points count
    as 1 so the division is always defined. The result is never negative.
    """
    effort = max(_number(story_points), 1.0)
    score = (_number(business_value) + _number(urgency)) / effort
    return max(score, 0.0)


def score_of(story) -> float:
    """compute_score() over a story-like object's current fields."""
    return compute_score(
        getattr(story, "business_value", None),
        getattr(story, "urgency", None),
        getattr(story, "story_points", None),
    )


def _rank_key(story):
    number = getattr(story, "story_number", None)
    return (
        -score_of(story),
        number is None,
        number if number is not None else 0,
        getattr(story, "id", None) or 0,
    )


def rank(stories) -> list:
    """Order stories by descending score; ties by ascending story_number.

    Stories without a number sort after numbered ones with the same score,
    then by id. Ranking an already-ranked list returns it unchanged.
    """
    return sorted(stories, key=_rank_key)


def classify(score) -> PriorityTier:
    """Map a score onto its display tier (P1 high, P2 medium, P3 low)."""
    score = _number(score)
    if score >= P1_THRESHOLD:
        return PriorityTier.P1
    if score >= P2_THRESHOLD:
        return PriorityTier.P2
    return PriorityTier.P3
