"""Churn risk scoring.

Each customer receives a 0-100 churn risk score built from four
independent sub-scores, each on a 0-100 scale:

- Recency (30%): days since the last purchase
- Frequency (25%): purchase count in the analysis window
- Segment (25%): RFM segment membership
- Lifecycle (20%): lifecycle stage

The weighted sum is rounded to an integer and mapped onto a risk tier.
The tier, not the raw score, drives the retention probability estimate and
the recommended actions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from functools import partial
from typing import Optional, Sequence

from customer_risk_audit.analyses._batch import DEFAULT_PARALLEL_THRESHOLD, map_records
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord
from customer_risk_audit.foundation.taxonomy import LifecycleStage, RfmSegment, RiskLevel

logger = logging.getLogger(__name__)

# Default factor weights (must sum to 1.0)
RECENCY_WEIGHT = Decimal("0.30")
FREQUENCY_WEIGHT = Decimal("0.25")
SEGMENT_WEIGHT = Decimal("0.25")
LIFECYCLE_WEIGHT = Decimal("0.20")

# (exclusive lower bound in days, sub-score), checked in order
RECENCY_RISK_STEPS = ((180, 100), (90, 70), (60, 40), (30, 20))

# (exclusive upper bound in purchases, sub-score), checked in order
FREQUENCY_RISK_STEPS = ((1, 80), (2, 50), (4, 20))

SEGMENT_RISK: dict[RfmSegment, int] = {
    RfmSegment.LOST: 100,
    RfmSegment.AT_RISK: 80,
    RfmSegment.CANNOT_LOSE_THEM: 80,
    RfmSegment.HIBERNATING: 60,
    RfmSegment.ABOUT_TO_SLEEP: 60,
    RfmSegment.NEED_ATTENTION: 40,
    RfmSegment.CHAMPIONS: 0,
    RfmSegment.LOYAL_CUSTOMERS: 0,
    RfmSegment.POTENTIAL_LOYALISTS: 0,
    RfmSegment.NEW_CUSTOMERS: 0,
    RfmSegment.PROMISING: 0,
}

LIFECYCLE_RISK: dict[LifecycleStage, int] = {
    LifecycleStage.CHURNED: 100,
    LifecycleStage.AT_RISK: 70,
    LifecycleStage.INACTIVE: 50,
    LifecycleStage.ACTIVE: 0,
    LifecycleStage.NEW: 0,
}

# A factor is reported only when its sub-score exceeds these thresholds
RECENCY_MATERIALITY = 40
FREQUENCY_MATERIALITY = 40
SEGMENT_MATERIALITY = 50
LIFECYCLE_MATERIALITY = 40

# Minimum score for each tier, checked from most to least severe
RISK_LEVEL_THRESHOLDS = (
    (80, RiskLevel.CRITICAL),
    (60, RiskLevel.HIGH),
    (40, RiskLevel.MEDIUM),
)

RETENTION_PROBABILITY: dict[RiskLevel, Decimal] = {
    RiskLevel.LOW: Decimal("0.9"),
    RiskLevel.MEDIUM: Decimal("0.7"),
    RiskLevel.HIGH: Decimal("0.4"),
    RiskLevel.CRITICAL: Decimal("0.2"),
}

RECOMMENDED_ACTIONS: dict[RiskLevel, tuple[str, ...]] = {
    RiskLevel.CRITICAL: (
        "Launch an immediate win-back plan",
        "Offer an exclusive incentive",
        "Assign a dedicated account contact",
    ),
    RiskLevel.HIGH: (
        "Send a personalized offer",
        "Highlight the latest products",
        "Review and improve the customer experience",
    ),
    RiskLevel.MEDIUM: (
        "Schedule regular check-ins",
        "Recommend related products",
        "Collect feedback",
    ),
    RiskLevel.LOW: (),
}

PROBABILITY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class ChurnRiskWeights:
    """Relative weight of each churn risk factor.

    Weights must each lie in [0, 1] and sum to exactly 1.0 so that the
    weighted score stays on the 0-100 scale of the sub-scores.
    """

    recency: Decimal = RECENCY_WEIGHT
    frequency: Decimal = FREQUENCY_WEIGHT
    segment: Decimal = SEGMENT_WEIGHT
    lifecycle: Decimal = LIFECYCLE_WEIGHT

    def __post_init__(self) -> None:
        """Validate weights."""
        for name in ("recency", "frequency", "segment", "lifecycle"):
            weight = getattr(self, name)
            if not Decimal("0") <= weight <= Decimal("1"):
                raise ValueError(f"{name} weight must be in [0, 1], got {weight}")
        total = self.recency + self.frequency + self.segment + self.lifecycle
        if total != Decimal("1"):
            raise ValueError(f"Churn risk weights must sum to 1.0, got {total}")


DEFAULT_CHURN_RISK_WEIGHTS = ChurnRiskWeights()


@dataclass(frozen=True)
class ContributingFactor:
    """A material churn risk factor for one customer.

    Attributes
    ----------
    factor:
        Machine-readable factor name (e.g. "long_absence")
    weight:
        Weight of the factor in the overall score (0-1)
    description:
        Human-readable explanation
    """

    factor: str
    weight: Decimal
    description: str


@dataclass(frozen=True)
class ChurnRiskAssessment:
    """Churn risk assessment for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    customer_name:
        Display name
    last_order_date:
        Date of the most recent purchase, if known
    days_since_last_order:
        Recency in days
    risk_score:
        Weighted risk score (0-100)
    risk_level:
        Tier derived from risk_score
    contributing_factors:
        Factors whose sub-score crossed its materiality threshold, in
        recency, frequency, segment, lifecycle order
    recommended_actions:
        Tier-specific retention actions
    retention_probability:
        Estimated probability of retaining the customer (0-1)
    current_ltv:
        Estimated lifetime value
    potential_loss_value:
        current_ltv × (1 - retention_probability)
    """

    customer_id: str
    customer_name: str
    last_order_date: Optional[date]
    days_since_last_order: int
    risk_score: int
    risk_level: RiskLevel
    contributing_factors: tuple[ContributingFactor, ...]
    recommended_actions: tuple[str, ...]
    retention_probability: Decimal
    current_ltv: Decimal
    potential_loss_value: Decimal

    def __post_init__(self) -> None:
        """Validate churn risk assessment."""
        if not 0 <= self.risk_score <= 100:
            raise ValueError(
                f"risk_score must be in [0, 100], got {self.risk_score} "
                f"(customer_id={self.customer_id})"
            )
        if self.risk_level != classify_risk_level(self.risk_score):
            raise ValueError(
                f"risk_level {self.risk_level.value} does not match risk_score "
                f"{self.risk_score} (customer_id={self.customer_id})"
            )
        if not Decimal("0") <= self.retention_probability <= Decimal("1"):
            raise ValueError(
                f"retention_probability must be in [0, 1], got {self.retention_probability}"
            )
        if self.current_ltv < 0:
            raise ValueError(f"current_ltv must be >= 0, got {self.current_ltv}")
        if self.potential_loss_value < 0:
            raise ValueError(
                f"potential_loss_value must be >= 0, got {self.potential_loss_value}"
            )


def _step_score(value: float, steps: Sequence[tuple[int, int]], above: bool) -> int:
    for bound, score in steps:
        if (value > bound) if above else (value < bound):
            return score
    return 0


def recency_risk(recency_days: int) -> int:
    """Recency sub-score: >180 days → 100, >90 → 70, >60 → 40, >30 → 20."""
    return _step_score(recency_days, RECENCY_RISK_STEPS, above=True)


def frequency_risk(frequency: float) -> int:
    """Frequency sub-score: <1 purchase → 80, <2 → 50, <4 → 20."""
    return _step_score(frequency, FREQUENCY_RISK_STEPS, above=False)


def segment_risk(rfm_segment: str) -> int:
    """Segment sub-score; unrecognised segments carry no risk."""
    segment = RfmSegment.parse(rfm_segment)
    return SEGMENT_RISK[segment] if segment is not None else 0


def lifecycle_risk(lifecycle_stage: str) -> int:
    stage = LifecycleStage.parse(lifecycle_stage)
    return LIFECYCLE_RISK[stage] if stage is not None else 0


def classify_risk_level(risk_score: int) -> RiskLevel:
    """Map a 0-100 score onto its risk tier.

    >>> classify_risk_level(80).value
    'critical'
    >>> classify_risk_level(79).value
    'high'
    """
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if risk_score >= threshold:
            return level
    return RiskLevel.LOW


def _format_frequency(frequency: float) -> str:
    return f"{frequency:g}"


def assess_churn_risk(
    record: CustomerMetricRecord,
    weights: ChurnRiskWeights = DEFAULT_CHURN_RISK_WEIGHTS,
) -> ChurnRiskAssessment:
    """Score churn risk for a single customer.

    Parameters
    ----------
    record:
        Integrated metrics for the customer
    weights:
        Factor weights (default: 0.30 / 0.25 / 0.25 / 0.20)

    Returns
    -------
    ChurnRiskAssessment
        Score, tier, explanation and monetary exposure

    Examples
    --------
    >>> from decimal import Decimal
    >>> record = CustomerMetricRecord(
    ...     customer_id="C1", full_name="Ada", recency_days=200, frequency=0.5,
    ...     monetary_value=Decimal("120"), rfm_segment="Lost",
    ...     lifecycle_stage="Churned", estimated_ltv=Decimal("1000"),
    ... )
    >>> assessment = assess_churn_risk(record)
    >>> assessment.risk_score, assessment.risk_level.value
    (95, 'critical')
    >>> assessment.potential_loss_value
    Decimal('800.0')
    """
    recency = recency_risk(record.recency_days)
    frequency = frequency_risk(record.frequency)
    segment = segment_risk(record.rfm_segment)
    lifecycle = lifecycle_risk(record.lifecycle_stage)

    weighted = (
        recency * weights.recency
        + frequency * weights.frequency
        + segment * weights.segment
        + lifecycle * weights.lifecycle
    )
    risk_score = int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    factors: list[ContributingFactor] = []
    if recency > RECENCY_MATERIALITY:
        factors.append(
            ContributingFactor(
                factor="long_absence",
                weight=weights.recency,
                description=(
                    f"No purchase for {record.recency_days} days, "
                    "longer than the usual purchase cycle"
                ),
            )
        )
    if frequency > FREQUENCY_MATERIALITY:
        factors.append(
            ContributingFactor(
                factor="declining_frequency",
                weight=weights.frequency,
                description=(
                    f"Low purchase frequency ({_format_frequency(record.frequency)} "
                    "purchases), below the typical level"
                ),
            )
        )
    if segment > SEGMENT_MATERIALITY:
        factors.append(
            ContributingFactor(
                factor="segment_downgrade",
                weight=weights.segment,
                description=f"Customer is in the {record.rfm_segment} segment, a high-risk group",
            )
        )
    if lifecycle > LIFECYCLE_MATERIALITY:
        factors.append(
            ContributingFactor(
                factor="lifecycle_decline",
                weight=weights.lifecycle,
                description=f"Lifecycle stage is {record.lifecycle_stage}, signalling disengagement",
            )
        )

    risk_level = classify_risk_level(risk_score)
    retention_probability = RETENTION_PROBABILITY[risk_level]
    current_ltv = record.estimated_ltv

    return ChurnRiskAssessment(
        customer_id=record.customer_id,
        customer_name=record.full_name,
        last_order_date=record.last_purchase_date,
        days_since_last_order=record.recency_days,
        risk_score=risk_score,
        risk_level=risk_level,
        contributing_factors=tuple(factors),
        recommended_actions=RECOMMENDED_ACTIONS[risk_level],
        retention_probability=retention_probability,
        current_ltv=current_ltv,
        potential_loss_value=current_ltv * (1 - retention_probability),
    )


def analyze_churn_risk(
    records: Sequence[CustomerMetricRecord],
    weights: ChurnRiskWeights = DEFAULT_CHURN_RISK_WEIGHTS,
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[ChurnRiskAssessment]:
    """Score churn risk for every customer.

    Parameters
    ----------
    records:
        Integrated customer metrics
    weights:
        Factor weights
    parallel:
        Allow multiprocessing for batches of at least ``parallel_threshold``
        customers
    parallel_threshold:
        Batch size above which scoring is parallelised
    n_workers:
        Worker processes (default: CPU count)

    Returns
    -------
    list[ChurnRiskAssessment]
        One assessment per record, sorted by risk_score descending. Ties
        keep their input order.
    """
    if not records:
        return []

    assessments = map_records(
        partial(assess_churn_risk, weights=weights),
        records,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    # sorted() is stable, including with reverse=True
    assessments = sorted(assessments, key=lambda a: a.risk_score, reverse=True)
    logger.debug("Scored churn risk for %d customers", len(assessments))
    return assessments


@dataclass(frozen=True)
class RiskFactorFrequency:
    """How often a contributing factor appears across the customer base."""

    factor: str
    affected_customers: int
    avg_weight: Decimal


@dataclass(frozen=True)
class ChurnRiskSummary:
    """Portfolio view of churn risk.

    Attributes
    ----------
    total_customers_at_risk:
        Customers whose tier is medium or worse
    critical_risk_customers:
        Customers in the critical tier
    high_risk_customers:
        Customers in the high tier
    medium_risk_customers:
        Customers in the medium tier
    total_potential_loss:
        Sum of potential_loss_value across all customers
    avg_retention_probability:
        Mean retention probability (2 decimal places)
    top_risk_factors:
        Contributing factors ordered by number of affected customers
    """

    total_customers_at_risk: int
    critical_risk_customers: int
    high_risk_customers: int
    medium_risk_customers: int
    total_potential_loss: Decimal
    avg_retention_probability: Decimal
    top_risk_factors: tuple[RiskFactorFrequency, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate churn risk summary."""
        at_risk = (
            self.critical_risk_customers
            + self.high_risk_customers
            + self.medium_risk_customers
        )
        if at_risk != self.total_customers_at_risk:
            raise ValueError(
                f"Tier counts ({at_risk}) must equal total_customers_at_risk "
                f"({self.total_customers_at_risk})"
            )
        if self.total_potential_loss < 0:
            raise ValueError(
                f"total_potential_loss must be >= 0, got {self.total_potential_loss}"
            )


def summarize_churn_risk(assessments: Sequence[ChurnRiskAssessment]) -> ChurnRiskSummary:
    """Aggregate churn assessments into a portfolio summary."""
    tier_counts = {level: 0 for level in RiskLevel}
    factor_counts: dict[str, int] = {}
    factor_weights: dict[str, Decimal] = {}
    total_loss = Decimal("0")
    total_probability = Decimal("0")

    for assessment in assessments:
        tier_counts[assessment.risk_level] += 1
        total_loss += assessment.potential_loss_value
        total_probability += assessment.retention_probability
        for factor in assessment.contributing_factors:
            factor_counts[factor.factor] = factor_counts.get(factor.factor, 0) + 1
            factor_weights[factor.factor] = (
                factor_weights.get(factor.factor, Decimal("0")) + factor.weight
            )

    if assessments:
        avg_probability = (total_probability / len(assessments)).quantize(
            PROBABILITY_PRECISION, rounding=ROUND_HALF_UP
        )
    else:
        avg_probability = Decimal("0.00")

    # Most common first; ties broken by factor name for stable output
    top_factors = tuple(
        RiskFactorFrequency(
            factor=name,
            affected_customers=count,
            avg_weight=(factor_weights[name] / count).quantize(
                PROBABILITY_PRECISION, rounding=ROUND_HALF_UP
            ),
        )
        for name, count in sorted(factor_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    )

    return ChurnRiskSummary(
        total_customers_at_risk=(
            tier_counts[RiskLevel.CRITICAL]
            + tier_counts[RiskLevel.HIGH]
            + tier_counts[RiskLevel.MEDIUM]
        ),
        critical_risk_customers=tier_counts[RiskLevel.CRITICAL],
        high_risk_customers=tier_counts[RiskLevel.HIGH],
        medium_risk_customers=tier_counts[RiskLevel.MEDIUM],
        total_potential_loss=total_loss,
        avg_retention_probability=avg_probability,
        top_risk_factors=top_factors,
    )
