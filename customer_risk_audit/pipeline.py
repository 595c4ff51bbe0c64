"""Batch pipeline running every analysis stage over integrated records.

The pipeline is pure: it takes already-integrated customer metric records
and returns one :class:`SegmentationResult`. Fetching, retrying and
envelope assembly belong to the callers (the command line and the async
service orchestrator).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Sequence

from customer_risk_audit.analyses._batch import DEFAULT_PARALLEL_THRESHOLD
from customer_risk_audit.analyses.churn_risk import (
    ChurnRiskAssessment,
    ChurnRiskSummary,
    ChurnRiskWeights,
    DEFAULT_CHURN_RISK_WEIGHTS,
    analyze_churn_risk,
    summarize_churn_risk,
)
from customer_risk_audit.analyses.recommendations import (
    Recommendation,
    generate_recommendations,
)
from customer_risk_audit.analyses.segment_summary import (
    SegmentAnalysisSummary,
    calculate_segment_analysis,
)
from customer_risk_audit.analyses.value_growth import (
    ValueGrowthProjection,
    ValueGrowthSummary,
    analyze_value_growth,
    summarize_value_growth,
)
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
    """Stage switches and tuning for one pipeline run.

    Attributes
    ----------
    include_rfm_analysis:
        Accepted for request compatibility. The segment summary is always
        computed because recommendations read its risk distribution.
    include_churn_risk:
        Score churn risk per customer
    include_value_growth:
        Project LTV growth per customer
    include_recommendations:
        Emit portfolio recommendations
    weights:
        Churn risk factor weights
    parallel:
        Allow multiprocessing for large customer bases
    parallel_threshold:
        Minimum record count before multiprocessing is used
    n_workers:
        Worker processes (None = all CPUs)
    """

    include_rfm_analysis: bool = True
    include_churn_risk: bool = True
    include_value_growth: bool = True
    include_recommendations: bool = True
    weights: ChurnRiskWeights = DEFAULT_CHURN_RISK_WEIGHTS
    parallel: bool = True
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD
    n_workers: Optional[int] = None


def _number(value: Decimal) -> float | int:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


@dataclass(frozen=True)
class SegmentationResult:
    """Outputs of one pipeline run.

    Disabled stages leave their list empty and their summary ``None``.
    """

    churn_risks: list[ChurnRiskAssessment] = field(default_factory=list)
    value_growth: list[ValueGrowthProjection] = field(default_factory=list)
    segment_analysis: SegmentAnalysisSummary = field(
        default_factory=lambda: calculate_segment_analysis(())
    )
    recommendations: list[Recommendation] = field(default_factory=list)
    churn_risk_summary: Optional[ChurnRiskSummary] = None
    value_growth_summary: Optional[ValueGrowthSummary] = None

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation with camelCase keys.

        Monetary and rate values are rendered as JSON numbers.
        """

        def serialise_risk(risk: ChurnRiskAssessment) -> dict[str, Any]:
            return {
                "customerId": risk.customer_id,
                "customerName": risk.customer_name,
                "lastOrderDate": (
                    risk.last_order_date.isoformat() if risk.last_order_date else None
                ),
                "daysSinceLastOrder": risk.days_since_last_order,
                "riskScore": risk.risk_score,
                "riskLevel": risk.risk_level.value,
                "contributingFactors": [
                    {
                        "factor": factor.factor,
                        "weight": _number(factor.weight),
                        "description": factor.description,
                    }
                    for factor in risk.contributing_factors
                ],
                "recommendedActions": list(risk.recommended_actions),
                "retentionProbability": _number(risk.retention_probability),
                "currentLTV": _number(risk.current_ltv),
                "potentialLossValue": _number(risk.potential_loss_value),
            }

        def serialise_growth(projection: ValueGrowthProjection) -> dict[str, Any]:
            return {
                "customerId": projection.customer_id,
                "customerName": projection.customer_name,
                "currentLTV": _number(projection.current_ltv),
                "estimatedFutureLTV": _number(projection.estimated_future_ltv),
                "ltvGrowthRate": projection.ltv_growth_rate,
                "ltvTrend": projection.ltv_trend.value,
                "growthPotential": projection.growth_potential.value,
                "currentSegment": projection.current_segment,
                "targetSegment": projection.target_segment,
                "timeToUpgrade": projection.time_to_upgrade,
                "requiredActions": list(projection.required_actions),
            }

        def serialise_churn_summary(summary: ChurnRiskSummary) -> dict[str, Any]:
            return {
                "totalCustomersAtRisk": summary.total_customers_at_risk,
                "criticalRiskCustomers": summary.critical_risk_customers,
                "highRiskCustomers": summary.high_risk_customers,
                "mediumRiskCustomers": summary.medium_risk_customers,
                "totalPotentialLoss": _number(summary.total_potential_loss),
                "avgRetentionProbability": _number(summary.avg_retention_probability),
                "topRiskFactors": [
                    {
                        "factor": item.factor,
                        "affectedCustomers": item.affected_customers,
                        "avgWeight": _number(item.avg_weight),
                    }
                    for item in summary.top_risk_factors
                ],
            }

        def serialise_growth_summary(summary: ValueGrowthSummary) -> dict[str, Any]:
            return {
                "totalCustomersTracked": summary.total_customers_tracked,
                "growingValueCustomers": summary.growing_value_customers,
                "decliningValueCustomers": summary.declining_value_customers,
                "avgGrowthRate": _number(summary.avg_growth_rate),
                "highPotentialCustomers": summary.high_potential_customers,
                "totalPotentialValue": _number(summary.total_potential_value),
                "segmentMigrations": [
                    {
                        "fromSegment": migration.from_segment,
                        "toSegment": migration.to_segment,
                        "count": migration.count,
                        "avgGrowthRate": _number(migration.avg_growth_rate),
                    }
                    for migration in summary.segment_migrations
                ],
            }

        analysis = self.segment_analysis
        return {
            "churnRisks": [serialise_risk(risk) for risk in self.churn_risks],
            "valueGrowth": [serialise_growth(item) for item in self.value_growth],
            "segmentAnalysis": {
                "totalCustomers": analysis.total_customers,
                "segmentDistribution": dict(analysis.segment_distribution),
                "averageRfmScores": {
                    "recency": analysis.average_rfm_scores.recency,
                    "frequency": _number(analysis.average_rfm_scores.frequency),
                    "monetary": analysis.average_rfm_scores.monetary,
                },
                "riskLevelDistribution": dict(analysis.risk_level_distribution),
            },
            "recommendations": [
                {
                    "category": item.category,
                    "priority": item.priority.value,
                    "description": item.description,
                    "expectedImpact": item.expected_impact,
                }
                for item in self.recommendations
            ],
            "churnRiskSummary": (
                serialise_churn_summary(self.churn_risk_summary)
                if self.churn_risk_summary is not None
                else None
            ),
            "valueGrowthSummary": (
                serialise_growth_summary(self.value_growth_summary)
                if self.value_growth_summary is not None
                else None
            ),
        }


def analyze_customer_segments(
    records: Sequence[CustomerMetricRecord],
    options: AnalysisOptions = AnalysisOptions(),
) -> SegmentationResult:
    """Run the scoring, projection, aggregation and recommendation stages.

    Parameters
    ----------
    records:
        Integrated customer metrics (see ``integrate_customer_metrics``)
    options:
        Stage switches and tuning

    Returns
    -------
    SegmentationResult
        Identical inputs always produce identical results.

    Examples
    --------
    >>> from decimal import Decimal
    >>> record = CustomerMetricRecord(
    ...     "C1", "Ada", 200, 1, Decimal("100"), "Lost", "Churned",
    ...     estimated_ltv=Decimal("1000"),
    ... )
    >>> result = analyze_customer_segments([record])
    >>> result.churn_risks[0].risk_level.value
    'critical'
    >>> [r.category for r in result.recommendations]
    ['customer retention']
    """
    churn_risks: list[ChurnRiskAssessment] = []
    churn_risk_summary: Optional[ChurnRiskSummary] = None
    if options.include_churn_risk:
        churn_risks = analyze_churn_risk(
            records,
            weights=options.weights,
            parallel=options.parallel,
            parallel_threshold=options.parallel_threshold,
            n_workers=options.n_workers,
        )
        churn_risk_summary = summarize_churn_risk(churn_risks)

    value_growth: list[ValueGrowthProjection] = []
    value_growth_summary: Optional[ValueGrowthSummary] = None
    if options.include_value_growth:
        value_growth = analyze_value_growth(
            records,
            parallel=options.parallel,
            parallel_threshold=options.parallel_threshold,
            n_workers=options.n_workers,
        )
        value_growth_summary = summarize_value_growth(value_growth)

    segment_analysis = calculate_segment_analysis(records, churn_risks)

    recommendations: list[Recommendation] = []
    if options.include_recommendations:
        recommendations = generate_recommendations(
            churn_risks, value_growth, segment_analysis
        )

    logger.info(
        "Analysed %d customers: %d churn assessments, %d growth projections, "
        "%d recommendations",
        len(records),
        len(churn_risks),
        len(value_growth),
        len(recommendations),
    )

    return SegmentationResult(
        churn_risks=churn_risks,
        value_growth=value_growth,
        segment_analysis=segment_analysis,
        recommendations=recommendations,
        churn_risk_summary=churn_risk_summary,
        value_growth_summary=value_growth_summary,
    )
