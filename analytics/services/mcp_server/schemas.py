"""Request and response models for customer segmentation.

Field names follow the camelCase wire format of the segmentation endpoint;
Python attributes use snake_case with aliases, so either spelling is
accepted on input and ``model_dump(by_alias=True)`` reproduces the wire
format.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_WINDOW_DAYS = 90


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SegmentationRequest(_WireModel):
    """Request to analyse customer segments.

    Omitted dates default to the trailing 90 days ending today (UTC).
    """

    start_date: Optional[date] = Field(
        default=None, description="Start of the analysis window (ISO date)"
    )
    end_date: Optional[date] = Field(
        default=None, description="End of the analysis window (ISO date)"
    )
    include_rfm_analysis: bool = Field(
        default=True,
        description="Accepted for compatibility; the segment summary is always returned",
    )
    include_churn_risk: bool = Field(default=True, description="Score churn risk")
    include_value_growth: bool = Field(
        default=True, description="Project value growth"
    )
    include_recommendations: bool = Field(
        default=True, description="Generate portfolio recommendations"
    )

    @model_validator(mode="after")
    def _apply_default_window(self) -> "SegmentationRequest":
        if self.end_date is None:
            self.end_date = datetime.now(timezone.utc).date()
        if self.start_date is None:
            self.start_date = self.end_date - timedelta(days=DEFAULT_WINDOW_DAYS)
        if self.start_date > self.end_date:
            raise ValueError(
                f"startDate ({self.start_date}) must not be after endDate ({self.end_date})"
            )
        return self


class ContributingFactorModel(_WireModel):
    factor: str
    weight: float
    description: str


class ChurnRiskModel(_WireModel):
    customer_id: str
    customer_name: str
    last_order_date: Optional[str] = None
    days_since_last_order: int
    risk_score: int
    risk_level: str
    contributing_factors: list[ContributingFactorModel]
    recommended_actions: list[str]
    retention_probability: float
    current_ltv: float = Field(alias="currentLTV")
    potential_loss_value: float


class ValueGrowthModel(_WireModel):
    customer_id: str
    customer_name: str
    current_ltv: float = Field(alias="currentLTV")
    estimated_future_ltv: float = Field(alias="estimatedFutureLTV")
    ltv_growth_rate: int = Field(alias="ltvGrowthRate")
    ltv_trend: str
    growth_potential: str
    current_segment: str
    target_segment: str
    time_to_upgrade: str
    required_actions: list[str]


class AverageRfmScoresModel(_WireModel):
    recency: int = 0
    frequency: float = 0
    monetary: int = 0


class SegmentAnalysisModel(_WireModel):
    total_customers: int = 0
    segment_distribution: dict[str, int] = Field(default_factory=dict)
    average_rfm_scores: AverageRfmScoresModel = Field(default_factory=AverageRfmScoresModel)
    risk_level_distribution: dict[str, int] = Field(default_factory=dict)


class RecommendationModel(_WireModel):
    category: str
    priority: str
    description: str
    expected_impact: str


class RiskFactorFrequencyModel(_WireModel):
    factor: str
    affected_customers: int
    avg_weight: float


class ChurnRiskSummaryModel(_WireModel):
    total_customers_at_risk: int
    critical_risk_customers: int
    high_risk_customers: int
    medium_risk_customers: int
    total_potential_loss: float
    avg_retention_probability: float
    top_risk_factors: list[RiskFactorFrequencyModel]


class SegmentMigrationModel(_WireModel):
    from_segment: str
    to_segment: str
    count: int
    avg_growth_rate: float


class ValueGrowthSummaryModel(_WireModel):
    total_customers_tracked: int
    growing_value_customers: int
    declining_value_customers: int
    avg_growth_rate: float
    high_potential_customers: int
    total_potential_value: float
    segment_migrations: list[SegmentMigrationModel]


class SegmentationData(_WireModel):
    """Analysis payload; failure envelopes carry the zeroed default."""

    churn_risks: list[ChurnRiskModel] = Field(default_factory=list)
    value_growth: list[ValueGrowthModel] = Field(default_factory=list)
    segment_analysis: SegmentAnalysisModel = Field(
        default_factory=SegmentAnalysisModel
    )
    recommendations: list[RecommendationModel] = Field(default_factory=list)
    churn_risk_summary: Optional[ChurnRiskSummaryModel] = None
    value_growth_summary: Optional[ValueGrowthSummaryModel] = None
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO-8601 UTC time the envelope was produced",
    )


class SegmentationResponse(_WireModel):
    """Envelope returned for every segmentation request."""

    success: bool
    data: SegmentationData = Field(default_factory=SegmentationData)
    error: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "SegmentationResponse":
        return cls(success=False, data=SegmentationData(), error=message)
