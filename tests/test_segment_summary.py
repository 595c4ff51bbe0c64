"""Tests for the portfolio segment summary."""

from decimal import Decimal

import pytest

from customer_risk_audit.analyses.churn_risk import analyze_churn_risk
from customer_risk_audit.analyses.segment_summary import (
    AverageRfmScores,
    SegmentAnalysisSummary,
    calculate_segment_analysis,
)
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord


def make_record(customer_id, segment, recency_days=10, frequency=2.0, monetary="100"):
    return CustomerMetricRecord(
        customer_id=customer_id,
        full_name=customer_id,
        recency_days=recency_days,
        frequency=frequency,
        monetary_value=Decimal(monetary),
        rfm_segment=segment,
        lifecycle_stage="Active",
    )


class TestCalculateSegmentAnalysis:
    def test_empty_input_is_all_zero(self):
        summary = calculate_segment_analysis([])
        assert summary.total_customers == 0
        assert summary.segment_distribution == {}
        assert summary.risk_level_distribution == {}
        assert summary.average_rfm_scores == AverageRfmScores(0, Decimal("0"), 0)

    def test_segment_distribution(self):
        records = [
            make_record("C1", "Champions"),
            make_record("C2", "Lost"),
            make_record("C3", "Champions"),
            make_record("C4", ""),
        ]
        summary = calculate_segment_analysis(records)
        assert summary.total_customers == 4
        assert summary.segment_distribution == {"Champions": 2, "Lost": 1, "Unknown": 1}
        assert sum(summary.segment_distribution.values()) == summary.total_customers

    def test_average_rfm_rounding(self):
        records = [
            make_record("C1", "Champions", recency_days=10, frequency=1, monetary="100.50"),
            make_record("C2", "Champions", recency_days=11, frequency=2, monetary="200"),
            make_record("C3", "Champions", recency_days=11, frequency=2, monetary="200"),
        ]
        averages = calculate_segment_analysis(records).average_rfm_scores
        # 32 / 3 = 10.67; 5 / 3 = 1.666...; 500.5 / 3 = 166.83
        assert averages.recency == 11
        assert averages.frequency == Decimal("1.67")
        assert averages.monetary == 167

    def test_half_values_round_up(self):
        records = [
            make_record("C1", "Champions", recency_days=10, monetary="100"),
            make_record("C2", "Champions", recency_days=11, monetary="101"),
        ]
        averages = calculate_segment_analysis(records).average_rfm_scores
        assert averages.recency == 11
        assert averages.monetary == 101

    def test_risk_distribution_without_churn_scores_is_empty(self):
        summary = calculate_segment_analysis([make_record("C1", "Lost")])
        assert summary.risk_level_distribution == {}

    def test_risk_distribution_is_zero_filled(self):
        records = [
            make_record("C1", "Lost", recency_days=200, frequency=0.5),
            make_record("C2", "Champions", recency_days=5, frequency=6),
        ]
        risks = analyze_churn_risk(records, parallel=False)
        summary = calculate_segment_analysis(records, risks)
        assert summary.risk_level_distribution == {
            "low": 1,
            "medium": 0,
            "high": 1,
            "critical": 0,
        }
        assert sum(summary.risk_level_distribution.values()) == summary.total_customers


class TestSegmentAnalysisSummaryValidation:
    def test_segment_counts_must_sum_to_total(self):
        with pytest.raises(ValueError, match="segment_distribution counts"):
            SegmentAnalysisSummary(
                total_customers=3,
                segment_distribution={"Lost": 2},
                average_rfm_scores=AverageRfmScores(0, Decimal("0"), 0),
                risk_level_distribution={},
            )

    def test_risk_counts_must_sum_to_total(self):
        with pytest.raises(ValueError, match="risk_level_distribution counts"):
            SegmentAnalysisSummary(
                total_customers=1,
                segment_distribution={"Lost": 1},
                average_rfm_scores=AverageRfmScores(0, Decimal("0"), 0),
                risk_level_distribution={"low": 0, "medium": 0, "high": 0, "critical": 2},
            )
