"""Portfolio-level remediation recommendations.

Recommendations are produced by a declarative rule table. Each rule counts
the customers it targets and fires once when that count is positive, so the
output never has more entries than there are rules. New rules are added by
appending to :data:`RECOMMENDATION_RULES`; output order is declaration order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from customer_risk_audit.analyses.churn_risk import ChurnRiskAssessment
from customer_risk_audit.analyses.segment_summary import SegmentAnalysisSummary
from customer_risk_audit.analyses.value_growth import ValueGrowthProjection
from customer_risk_audit.foundation.taxonomy import (
    GrowthPotential,
    RecommendationPriority,
    RiskLevel,
)


@dataclass(frozen=True)
class Recommendation:
    """A remediation action for a group of customers."""

    category: str
    priority: RecommendationPriority
    description: str
    expected_impact: str


@dataclass(frozen=True)
class RecommendationContext:
    """Inputs every recommendation rule may read from."""

    churn_risks: Sequence[ChurnRiskAssessment]
    value_growth: Sequence[ValueGrowthProjection]
    summary: SegmentAnalysisSummary

    def risk_tier_count(self, level: RiskLevel) -> int:
        return self.summary.risk_level_distribution.get(level.value, 0)

    def growth_potential_count(self, potential: GrowthPotential) -> int:
        return sum(1 for p in self.value_growth if p.growth_potential is potential)


@dataclass(frozen=True)
class RecommendationRule:
    """Declarative trigger for one recommendation.

    Attributes
    ----------
    category:
        Recommendation category
    priority:
        Priority of the emitted recommendation
    count:
        Number of customers the rule targets; the rule fires when positive
    description:
        Template formatted with ``count``
    expected_impact:
        Fixed impact statement for the rule
    """

    category: str
    priority: RecommendationPriority
    count: Callable[[RecommendationContext], int]
    description: str
    expected_impact: str

    def evaluate(self, context: RecommendationContext) -> Recommendation | None:
        count = self.count(context)
        if count <= 0:
            return None
        return Recommendation(
            category=self.category,
            priority=self.priority,
            description=self.description.format(count=count),
            expected_impact=self.expected_impact,
        )


RECOMMENDATION_RULES: tuple[RecommendationRule, ...] = (
    RecommendationRule(
        category="customer retention",
        priority=RecommendationPriority.CRITICAL,
        count=lambda ctx: ctx.risk_tier_count(RiskLevel.CRITICAL),
        description="{count} critical-risk customers need immediate attention and win-back outreach",
        expected_impact="Expected to win back 20-40% of churning customers",
    ),
    RecommendationRule(
        category="risk prevention",
        priority=RecommendationPriority.HIGH,
        count=lambda ctx: ctx.risk_tier_count(RiskLevel.HIGH),
        description="{count} high-risk customers need preventive care",
        expected_impact="Expected to reduce churn by 60-80%",
    ),
    RecommendationRule(
        category="value uplift",
        priority=RecommendationPriority.HIGH,
        count=lambda ctx: ctx.growth_potential_count(GrowthPotential.HIGH),
        description="{count} high-potential customers are ready for deeper value development",
        expected_impact="Expected LTV uplift of 15-25%",
    ),
    RecommendationRule(
        category="growth nurturing",
        priority=RecommendationPriority.MEDIUM,
        count=lambda ctx: ctx.growth_potential_count(GrowthPotential.MEDIUM),
        description="{count} medium-potential customers suit a growth nurturing program",
        expected_impact="Expected LTV uplift of 8-15%",
    ),
)


def generate_recommendations(
    churn_risks: Sequence[ChurnRiskAssessment],
    value_growth: Sequence[ValueGrowthProjection],
    summary: SegmentAnalysisSummary,
    rules: Sequence[RecommendationRule] = RECOMMENDATION_RULES,
) -> list[Recommendation]:
    """Evaluate recommendation rules in declaration order.

    Risk tier counts come from ``summary.risk_level_distribution``; growth
    potential counts come from ``value_growth``.
    """
    context = RecommendationContext(
        churn_risks=churn_risks, value_growth=value_growth, summary=summary
    )
    recommendations: list[Recommendation] = []
    for rule in rules:
        recommendation = rule.evaluate(context)
        if recommendation is not None:
            recommendations.append(recommendation)
    return recommendations
