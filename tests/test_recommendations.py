"""Tests for the recommendation rule table."""

from decimal import Decimal

from customer_risk_audit.analyses.churn_risk import analyze_churn_risk
from customer_risk_audit.analyses.recommendations import (
    RECOMMENDATION_RULES,
    RecommendationRule,
    generate_recommendations,
)
from customer_risk_audit.analyses.segment_summary import calculate_segment_analysis
from customer_risk_audit.analyses.value_growth import analyze_value_growth
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord
from customer_risk_audit.foundation.taxonomy import RecommendationPriority


def make_record(
    customer_id,
    recency_days=10,
    frequency=5.0,
    segment="Champions",
    stage="Active",
    frequency_per_month=0.0,
    aov="0",
    ltv="0",
):
    return CustomerMetricRecord(
        customer_id=customer_id,
        full_name=customer_id,
        recency_days=recency_days,
        frequency=frequency,
        monetary_value=Decimal("100"),
        rfm_segment=segment,
        lifecycle_stage=stage,
        purchase_frequency_per_month=frequency_per_month,
        average_order_value=Decimal(aov),
        estimated_ltv=Decimal(ltv),
    )


CRITICAL = dict(recency_days=200, frequency=0.5, segment="Lost", stage="Churned")
HIGH = dict(recency_days=200, frequency=0.5, segment="Lost", stage="Active")
HIGH_POTENTIAL = dict(frequency_per_month=3, aov="1500", ltv="6000")
MEDIUM_POTENTIAL = dict(frequency_per_month=1.5, aov="600", ltv="500")


def recommend(records):
    churn_risks = analyze_churn_risk(records, parallel=False)
    value_growth = analyze_value_growth(records, parallel=False)
    summary = calculate_segment_analysis(records, churn_risks)
    return generate_recommendations(churn_risks, value_growth, summary)


class TestGenerateRecommendations:
    """Test which rules fire and in what order."""

    def test_no_recommendations_for_healthy_declining_base(self):
        assert recommend([make_record("C1")]) == []

    def test_no_recommendations_for_empty_base(self):
        assert recommend([]) == []

    def test_critical_tier_triggers_retention(self):
        recommendations = recommend([make_record("C1", **CRITICAL), make_record("C2", **CRITICAL)])
        assert len(recommendations) == 1
        recommendation = recommendations[0]
        assert recommendation.category == "customer retention"
        assert recommendation.priority is RecommendationPriority.CRITICAL
        assert recommendation.description.startswith("2 critical-risk customers")
        assert recommendation.expected_impact == "Expected to win back 20-40% of churning customers"

    def test_all_rules_fire_in_declaration_order(self):
        records = [
            make_record("HP", **HIGH_POTENTIAL),
            make_record("MP", **MEDIUM_POTENTIAL),
            make_record("H", **HIGH),
            make_record("CR", **CRITICAL),
        ]
        recommendations = recommend(records)
        assert [r.category for r in recommendations] == [
            "customer retention",
            "risk prevention",
            "value uplift",
            "growth nurturing",
        ]
        assert [r.priority for r in recommendations] == [
            RecommendationPriority.CRITICAL,
            RecommendationPriority.HIGH,
            RecommendationPriority.HIGH,
            RecommendationPriority.MEDIUM,
        ]
        assert all(r.description.startswith("1 ") for r in recommendations)

    def test_at_most_one_recommendation_per_rule(self):
        records = [make_record(f"C{i}", **HIGH_POTENTIAL) for i in range(5)]
        recommendations = recommend(records)
        assert len(recommendations) <= len(RECOMMENDATION_RULES)
        assert [r.category for r in recommendations] == ["value uplift"]
        assert recommendations[0].description.startswith("5 high-potential customers")

    def test_growth_rules_skip_without_value_growth(self):
        records = [make_record("HP", **HIGH_POTENTIAL)]
        churn_risks = analyze_churn_risk(records, parallel=False)
        summary = calculate_segment_analysis(records, churn_risks)
        assert generate_recommendations(churn_risks, [], summary) == []

    def test_custom_rules(self):
        """Extra rules can be appended to the table."""
        everyone = RecommendationRule(
            category="portfolio review",
            priority=RecommendationPriority.LOW,
            count=lambda ctx: ctx.summary.total_customers,
            description="Review {count} customers",
            expected_impact="Keeps the portfolio current",
        )
        records = [make_record("C1")]
        summary = calculate_segment_analysis(records)
        recommendations = generate_recommendations(
            [], [], summary, rules=RECOMMENDATION_RULES + (everyone,)
        )
        assert [r.description for r in recommendations] == ["Review 1 customers"]
