"""Customer lifecycle risk and value analyses.

Each analysis maps over the integrated customer metric records or reduces
them into a portfolio view:

1. Churn risk - weighted multi-factor risk score and tier per customer
2. Value growth - projected LTV growth and segment upgrade path per customer
3. Segment summary - segment counts, average RFM, risk tier distribution
4. Recommendations - prioritised remediation actions for the portfolio
"""

from .churn_risk import (
    ChurnRiskAssessment,
    ChurnRiskSummary,
    ChurnRiskWeights,
    ContributingFactor,
    DEFAULT_CHURN_RISK_WEIGHTS,
    RiskFactorFrequency,
    analyze_churn_risk,
    assess_churn_risk,
    classify_risk_level,
    summarize_churn_risk,
)
from .recommendations import (
    RECOMMENDATION_RULES,
    Recommendation,
    RecommendationRule,
    generate_recommendations,
)
from .segment_summary import (
    AverageRfmScores,
    SegmentAnalysisSummary,
    calculate_segment_analysis,
)
from .value_growth import (
    SegmentMigration,
    ValueGrowthProjection,
    ValueGrowthSummary,
    analyze_value_growth,
    project_value_growth,
    summarize_value_growth,
)

__all__ = [
    # Churn risk
    "ChurnRiskAssessment",
    "ChurnRiskSummary",
    "ChurnRiskWeights",
    "ContributingFactor",
    "DEFAULT_CHURN_RISK_WEIGHTS",
    "RiskFactorFrequency",
    "analyze_churn_risk",
    "assess_churn_risk",
    "classify_risk_level",
    "summarize_churn_risk",
    # Value growth
    "SegmentMigration",
    "ValueGrowthProjection",
    "ValueGrowthSummary",
    "analyze_value_growth",
    "project_value_growth",
    "summarize_value_growth",
    # Segment summary
    "AverageRfmScores",
    "SegmentAnalysisSummary",
    "calculate_segment_analysis",
    # Recommendations
    "RECOMMENDATION_RULES",
    "Recommendation",
    "RecommendationRule",
    "generate_recommendations",
]
