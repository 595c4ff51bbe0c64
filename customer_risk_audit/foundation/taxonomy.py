"""Categorical taxonomies used across the scoring engine.

Segment and lifecycle labels arrive from the store as free-form strings.
They are resolved once, here, into explicit enumerations so that every
downstream lookup table can be keyed by a closed set of members.
"""

from __future__ import annotations

from enum import Enum


def _normalise_label(label: str) -> str:
    return " ".join(label.split()).casefold()


class RfmSegment(str, Enum):
    """The 11-segment RFM taxonomy."""

    CHAMPIONS = "Champions"
    LOYAL_CUSTOMERS = "Loyal Customers"
    POTENTIAL_LOYALISTS = "Potential Loyalists"
    NEW_CUSTOMERS = "New Customers"
    PROMISING = "Promising"
    NEED_ATTENTION = "Need Attention"
    ABOUT_TO_SLEEP = "About to Sleep"
    AT_RISK = "At Risk"
    CANNOT_LOSE_THEM = "Cannot Lose Them"
    HIBERNATING = "Hibernating"
    LOST = "Lost"

    @classmethod
    def parse(cls, label: str | None) -> RfmSegment | None:
        """Resolve a store label to a segment, or None when unrecognised.

        Matching ignores case and repeated whitespace. Labels used by older
        segmentation views ("Churned", "Cannot Lose") are accepted as aliases.
        """
        if not label:
            return None
        return _SEGMENT_LOOKUP.get(_normalise_label(label))


_SEGMENT_LOOKUP: dict[str, RfmSegment] = {
    _normalise_label(segment.value): segment for segment in RfmSegment
}
_SEGMENT_LOOKUP.update(
    {
        "churned": RfmSegment.LOST,
        "cannot lose": RfmSegment.CANNOT_LOSE_THEM,
    }
)


class LifecycleStage(str, Enum):
    """Coarse engagement trajectory of a customer."""

    NEW = "New"
    ACTIVE = "Active"
    AT_RISK = "At Risk"
    INACTIVE = "Inactive"
    CHURNED = "Churned"

    @classmethod
    def parse(cls, label: str | None) -> LifecycleStage | None:
        if not label:
            return None
        return _STAGE_LOOKUP.get(_normalise_label(label))


_STAGE_LOOKUP: dict[str, LifecycleStage] = {
    _normalise_label(stage.value): stage for stage in LifecycleStage
}


class RiskLevel(str, Enum):
    """Churn risk tiers, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LtvTrend(str, Enum):
    ACCELERATING = "accelerating"
    GROWING = "growing"
    STABLE = "stable"
    DECLINING = "declining"


class GrowthPotential(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
