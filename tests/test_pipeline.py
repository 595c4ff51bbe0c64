"""Tests for the end-to-end analysis pipeline."""

import json
from decimal import Decimal

import pytest

from customer_risk_audit import (
    AnalysisOptions,
    SegmentationResult,
    analyze_customer_segments,
)
from customer_risk_audit.analyses.churn_risk import ChurnRiskWeights
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord


@pytest.fixture
def records():
    return [
        CustomerMetricRecord(
            "C1", "Ada", 200, 0.5, Decimal("120"), "Lost", "Churned",
            estimated_ltv=Decimal("1000"),
        ),
        CustomerMetricRecord(
            "C2", "Bo", 10, 5, Decimal("900"), "Champions", "Active",
            purchase_frequency_per_month=3,
            average_order_value=Decimal("1500"),
            estimated_ltv=Decimal("6000"),
        ),
        CustomerMetricRecord(
            "C3", "Cy", 45, 1.5, Decimal("300"), "New Customers", "New",
            purchase_frequency_per_month=1.5,
            average_order_value=Decimal("600"),
            estimated_ltv=Decimal("1000"),
        ),
    ]


SEQUENTIAL = AnalysisOptions(parallel=False)


class TestAnalyzeCustomerSegments:
    """Test stage orchestration."""

    def test_empty_input(self):
        result = analyze_customer_segments([], SEQUENTIAL)
        payload = result.as_dict()

        assert payload["churnRisks"] == []
        assert payload["valueGrowth"] == []
        assert payload["recommendations"] == []
        assert payload["segmentAnalysis"] == {
            "totalCustomers": 0,
            "segmentDistribution": {},
            "averageRfmScores": {"recency": 0, "frequency": 0, "monetary": 0},
            "riskLevelDistribution": {},
        }
        assert payload["churnRiskSummary"]["totalCustomersAtRisk"] == 0
        assert payload["valueGrowthSummary"]["totalCustomersTracked"] == 0

    def test_all_stages(self, records):
        result = analyze_customer_segments(records, SEQUENTIAL)

        assert [r.customer_id for r in result.churn_risks] == ["C1", "C3", "C2"]
        assert [p.customer_id for p in result.value_growth] == ["C2", "C3", "C1"]
        assert result.segment_analysis.total_customers == 3
        assert result.segment_analysis.risk_level_distribution == {
            "low": 2,
            "medium": 0,
            "high": 0,
            "critical": 1,
        }
        assert [r.category for r in result.recommendations] == [
            "customer retention",
            "value uplift",
            "growth nurturing",
        ]
        assert result.churn_risk_summary.critical_risk_customers == 1
        assert result.value_growth_summary.high_potential_customers == 1

    def test_churn_risk_disabled(self, records):
        options = AnalysisOptions(include_churn_risk=False, parallel=False)
        result = analyze_customer_segments(records, options)

        assert result.churn_risks == []
        assert result.churn_risk_summary is None
        assert result.segment_analysis.risk_level_distribution == {}
        # Risk-tier rules never fire without churn scores
        assert [r.category for r in result.recommendations] == [
            "value uplift",
            "growth nurturing",
        ]

    def test_value_growth_disabled(self, records):
        options = AnalysisOptions(include_value_growth=False, parallel=False)
        result = analyze_customer_segments(records, options)

        assert result.value_growth == []
        assert result.value_growth_summary is None
        assert [r.category for r in result.recommendations] == ["customer retention"]

    def test_recommendations_disabled(self, records):
        options = AnalysisOptions(include_recommendations=False, parallel=False)
        assert analyze_customer_segments(records, options).recommendations == []

    def test_segment_analysis_runs_when_rfm_flag_off(self, records):
        options = AnalysisOptions(include_rfm_analysis=False, parallel=False)
        result = analyze_customer_segments(records, options)
        assert result.segment_analysis.total_customers == 3

    def test_custom_weights(self, records):
        weights = ChurnRiskWeights(
            recency=Decimal("1"),
            frequency=Decimal("0"),
            segment=Decimal("0"),
            lifecycle=Decimal("0"),
        )
        result = analyze_customer_segments(
            records, AnalysisOptions(weights=weights, parallel=False)
        )
        scores = {r.customer_id: r.risk_score for r in result.churn_risks}
        assert scores == {"C1": 100, "C2": 0, "C3": 20}

    def test_deterministic(self, records):
        first = analyze_customer_segments(records, SEQUENTIAL).as_dict()
        second = analyze_customer_segments(records, SEQUENTIAL).as_dict()
        assert first == second


class TestSegmentationResultAsDict:
    """Test the camelCase wire representation."""

    def test_churn_risk_keys(self, records):
        payload = analyze_customer_segments(records, SEQUENTIAL).as_dict()
        risk = payload["churnRisks"][0]

        assert risk["customerId"] == "C1"
        assert risk["riskScore"] == 95
        assert risk["riskLevel"] == "critical"
        assert risk["retentionProbability"] == 0.2
        assert risk["currentLTV"] == 1000
        assert risk["potentialLossValue"] == 800
        assert risk["lastOrderDate"] is None
        assert [f["factor"] for f in risk["contributingFactors"]] == [
            "long_absence",
            "declining_frequency",
            "segment_downgrade",
            "lifecycle_decline",
        ]
        assert risk["contributingFactors"][0]["weight"] == 0.3

    def test_value_growth_keys(self, records):
        payload = analyze_customer_segments(records, SEQUENTIAL).as_dict()
        growth = payload["valueGrowth"][0]

        assert growth["customerId"] == "C2"
        assert growth["currentLTV"] == 6000
        assert growth["estimatedFutureLTV"] == 6900
        assert growth["ltvGrowthRate"] == 15
        assert growth["ltvTrend"] == "accelerating"
        assert growth["growthPotential"] == "high"
        assert growth["currentSegment"] == "Champions"
        assert growth["targetSegment"] == "Champions"
        assert growth["timeToUpgrade"] == "3-6 months"
        assert growth["requiredActions"] == list(
            analyze_customer_segments(records, SEQUENTIAL).value_growth[0].required_actions
        )
        assert "segmentUpgradePath" not in growth

    def test_summary_keys(self, records):
        payload = analyze_customer_segments(records, SEQUENTIAL).as_dict()

        # 800 + 6000 * 0.1 + 1000 * 0.1
        assert payload["churnRiskSummary"]["totalPotentialLoss"] == 1500
        assert payload["segmentAnalysis"]["averageRfmScores"]["frequency"] == pytest.approx(2.33)
        assert payload["valueGrowthSummary"]["segmentMigrations"] == [
            {
                "fromSegment": "New Customers",
                "toSegment": "Potential Loyalists",
                "count": 1,
                "avgGrowthRate": 8,
            }
        ]

    def test_disabled_summaries_are_null(self, records):
        options = AnalysisOptions(
            include_churn_risk=False, include_value_growth=False, parallel=False
        )
        payload = analyze_customer_segments(records, options).as_dict()
        assert payload["churnRiskSummary"] is None
        assert payload["valueGrowthSummary"] is None

    def test_is_json_serialisable(self, records):
        payload = analyze_customer_segments(records, SEQUENTIAL).as_dict()
        assert json.loads(json.dumps(payload)) == payload

    def test_default_result_is_empty(self):
        assert SegmentationResult().as_dict()["segmentAnalysis"]["totalCustomers"] == 0
