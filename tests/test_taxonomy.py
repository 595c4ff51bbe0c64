"""Tests for the segment and lifecycle taxonomies."""

import pytest

from customer_risk_audit.foundation.taxonomy import (
    LifecycleStage,
    RfmSegment,
    RiskLevel,
)


class TestRfmSegment:
    """Test parsing store labels into RFM segments."""

    def test_taxonomy_has_eleven_segments(self):
        assert len(RfmSegment) == 11

    @pytest.mark.parametrize("segment", list(RfmSegment))
    def test_canonical_labels_round_trip(self, segment):
        assert RfmSegment.parse(segment.value) is segment

    def test_matching_ignores_case_and_whitespace(self):
        assert RfmSegment.parse("  at   risk ") is RfmSegment.AT_RISK
        assert RfmSegment.parse("CHAMPIONS") is RfmSegment.CHAMPIONS

    def test_legacy_aliases(self):
        """Older views label lost customers 'Churned'."""
        assert RfmSegment.parse("Churned") is RfmSegment.LOST
        assert RfmSegment.parse("Cannot Lose") is RfmSegment.CANNOT_LOSE_THEM

    @pytest.mark.parametrize("label", [None, "", "Lost Cause", "Unknown"])
    def test_unrecognised_labels_return_none(self, label):
        """Substring matches are not accepted."""
        assert RfmSegment.parse(label) is None

    def test_segment_is_a_string(self):
        assert RfmSegment.LOST == "Lost"


class TestLifecycleStage:
    """Test parsing lifecycle stage labels."""

    def test_parse_known_stages(self):
        assert LifecycleStage.parse("Churned") is LifecycleStage.CHURNED
        assert LifecycleStage.parse("at risk") is LifecycleStage.AT_RISK

    def test_parse_unknown_stage(self):
        assert LifecycleStage.parse("Dormant") is None
        assert LifecycleStage.parse(None) is None


def test_risk_level_values_are_lowercase():
    assert [level.value for level in RiskLevel] == ["low", "medium", "high", "critical"]
