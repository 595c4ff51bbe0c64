"""Customer value growth projection.

Projects a forward-looking LTV growth rate for each customer from their
purchase cadence and order value, classifies the resulting trend and growth
potential, and proposes an upgrade path to a higher-value RFM segment.

The growth rate is a step function rather than a fitted model: customers
who buy often with large baskets are projected to grow fastest, customers
with almost no purchase cadence are projected to decline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from customer_risk_audit.analyses._batch import DEFAULT_PARALLEL_THRESHOLD, map_records
from customer_risk_audit.foundation.metric_record import (
    UNKNOWN_CUSTOMER_NAME,
    CustomerMetricRecord,
)
from customer_risk_audit.foundation.taxonomy import GrowthPotential, LtvTrend, RfmSegment

logger = logging.getLogger(__name__)

# (min purchases/month, min average order value, growth rate %), all bounds
# exclusive; a None AOV bound means any order value qualifies
GROWTH_RATE_RULES: tuple[tuple[float, Optional[int], int], ...] = (
    (2, 1000, 15),
    (1, 500, 8),
    (0.5, None, 3),
)
DEFAULT_GROWTH_RATE = -5

ACCELERATING_RATE = 10
GROWING_RATE = 5

HIGH_POTENTIAL_MIN_RATE = 10
HIGH_POTENTIAL_MIN_LTV = Decimal("5000")
MEDIUM_POTENTIAL_MIN_RATE = 5
MEDIUM_POTENTIAL_MIN_LTV = Decimal("2000")

# (from segment, growth rate that must be exceeded, target segment), first
# match wins
SEGMENT_UPGRADE_PATHS: tuple[tuple[RfmSegment, int, RfmSegment], ...] = (
    (RfmSegment.NEW_CUSTOMERS, 5, RfmSegment.POTENTIAL_LOYALISTS),
    (RfmSegment.POTENTIAL_LOYALISTS, 10, RfmSegment.LOYAL_CUSTOMERS),
    (RfmSegment.NEED_ATTENTION, 0, RfmSegment.POTENTIAL_LOYALISTS),
)

# (growth rate bound, bound is inclusive, time horizon), checked in order.
# Only the top tier includes its bound.
UPGRADE_HORIZONS = (
    (15, True, "3-6 months"),
    (8, False, "6-9 months"),
    (3, False, "9-12 months"),
)
LONG_UPGRADE_HORIZON = "12+ months"

REQUIRED_ACTIONS: dict[GrowthPotential, tuple[str, ...]] = {
    GrowthPotential.HIGH: (
        "Provide VIP-exclusive service",
        "Send personalized product recommendations",
        "Offer priority customer support",
    ),
    GrowthPotential.MEDIUM: (
        "Offer a membership upgrade incentive",
        "Run cross-sell campaigns",
        "Enroll in the loyalty program",
    ),
    GrowthPotential.LOW: (
        "Send baseline care messaging",
        "Keep in regular contact",
        "Run a satisfaction survey",
    ),
}

RATE_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class ValueGrowthProjection:
    """Projected value growth for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    customer_name:
        Display name
    current_ltv:
        Current estimated lifetime value
    estimated_future_ltv:
        current_ltv grown by ltv_growth_rate, rounded to a whole amount
    ltv_growth_rate:
        Projected growth rate in percent (may be negative)
    ltv_trend:
        Trend classification of the growth rate
    growth_potential:
        Combined classification of growth rate and current value
    current_segment:
        Current RFM segment label
    target_segment:
        Proposed segment to grow into; equals current_segment when no
        upgrade path applies
    time_to_upgrade:
        Bucketed time horizon for the upgrade
    required_actions:
        Nurturing actions for the growth potential tier
    """

    customer_id: str
    customer_name: str
    current_ltv: Decimal
    estimated_future_ltv: Decimal
    ltv_growth_rate: int
    ltv_trend: LtvTrend
    growth_potential: GrowthPotential
    current_segment: str
    target_segment: str
    time_to_upgrade: str
    required_actions: tuple[str, ...]

    def __post_init__(self) -> None:
        """Validate value growth projection."""
        if self.current_ltv < 0:
            raise ValueError(f"current_ltv must be >= 0, got {self.current_ltv}")
        if self.estimated_future_ltv < 0:
            raise ValueError(
                f"estimated_future_ltv must be >= 0, got {self.estimated_future_ltv}"
            )

    @property
    def has_upgrade_path(self) -> bool:
        return self.target_segment != self.current_segment


def project_growth_rate(purchase_frequency_per_month: float, average_order_value: Decimal) -> int:
    """Step-function LTV growth rate in percent.

    >>> project_growth_rate(3, Decimal("1500"))
    15
    >>> project_growth_rate(0.2, Decimal("5000"))
    -5
    """
    for min_frequency, min_aov, rate in GROWTH_RATE_RULES:
        if purchase_frequency_per_month > min_frequency and (
            min_aov is None or average_order_value > min_aov
        ):
            return rate
    return DEFAULT_GROWTH_RATE


def classify_ltv_trend(ltv_growth_rate: float) -> LtvTrend:
    if ltv_growth_rate > ACCELERATING_RATE:
        return LtvTrend.ACCELERATING
    if ltv_growth_rate > GROWING_RATE:
        return LtvTrend.GROWING
    if ltv_growth_rate < 0:
        return LtvTrend.DECLINING
    return LtvTrend.STABLE


def classify_growth_potential(ltv_growth_rate: float, current_ltv: Decimal) -> GrowthPotential:
    """High needs fast growth on an already valuable customer; medium needs either."""
    if ltv_growth_rate > HIGH_POTENTIAL_MIN_RATE and current_ltv > HIGH_POTENTIAL_MIN_LTV:
        return GrowthPotential.HIGH
    if ltv_growth_rate > MEDIUM_POTENTIAL_MIN_RATE or current_ltv > MEDIUM_POTENTIAL_MIN_LTV:
        return GrowthPotential.MEDIUM
    return GrowthPotential.LOW


def target_segment_for(current_segment: str, ltv_growth_rate: float) -> str:
    """Return the upgrade target for a segment, or the segment itself."""
    segment = RfmSegment.parse(current_segment)
    if segment is not None:
        for from_segment, min_rate, target in SEGMENT_UPGRADE_PATHS:
            if segment is from_segment and ltv_growth_rate > min_rate:
                return target.value
    return current_segment


def time_to_upgrade(ltv_growth_rate: float) -> str:
    """Bucket a growth rate: >=15, >8, >3, else the long horizon."""
    for bound, inclusive, horizon in UPGRADE_HORIZONS:
        if ltv_growth_rate > bound or (inclusive and ltv_growth_rate == bound):
            return horizon
    return LONG_UPGRADE_HORIZON


def project_value_growth(record: CustomerMetricRecord) -> ValueGrowthProjection:
    """Project value growth for a single customer.

    Examples
    --------
    >>> record = CustomerMetricRecord(
    ...     customer_id="C1", full_name="Ada", recency_days=5, frequency=12,
    ...     monetary_value=Decimal("18000"), rfm_segment="Champions",
    ...     lifecycle_stage="Active", purchase_frequency_per_month=3,
    ...     average_order_value=Decimal("1500"), estimated_ltv=Decimal("6000"),
    ... )
    >>> projection = project_value_growth(record)
    >>> projection.ltv_growth_rate, projection.growth_potential.value
    (15, 'high')
    >>> projection.estimated_future_ltv
    Decimal('6900')
    """
    current_ltv = record.estimated_ltv
    rate = project_growth_rate(record.purchase_frequency_per_month, record.average_order_value)
    potential = classify_growth_potential(rate, current_ltv)
    current_segment = record.segment_label

    estimated_future_ltv = (current_ltv * (1 + Decimal(rate) / 100)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )

    return ValueGrowthProjection(
        customer_id=record.customer_id,
        customer_name=record.full_name or UNKNOWN_CUSTOMER_NAME,
        current_ltv=current_ltv,
        estimated_future_ltv=estimated_future_ltv,
        ltv_growth_rate=rate,
        ltv_trend=classify_ltv_trend(rate),
        growth_potential=potential,
        current_segment=current_segment,
        target_segment=target_segment_for(current_segment, rate),
        time_to_upgrade=time_to_upgrade(rate),
        required_actions=REQUIRED_ACTIONS[potential],
    )


def analyze_value_growth(
    records: Sequence[CustomerMetricRecord],
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[ValueGrowthProjection]:
    """Project value growth for every customer.

    Returns
    -------
    list[ValueGrowthProjection]
        One projection per record, sorted by ltv_growth_rate descending.
        Ties keep their input order.
    """
    if not records:
        return []

    projections = map_records(
        project_value_growth,
        records,
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    projections = sorted(projections, key=lambda p: p.ltv_growth_rate, reverse=True)
    logger.debug("Projected value growth for %d customers", len(projections))
    return projections


@dataclass(frozen=True)
class SegmentMigration:
    """Customers projected to move from one segment to another."""

    from_segment: str
    to_segment: str
    count: int
    avg_growth_rate: Decimal


@dataclass(frozen=True)
class ValueGrowthSummary:
    """Portfolio view of projected value growth.

    Attributes
    ----------
    total_customers_tracked:
        Number of projections summarised
    growing_value_customers:
        Customers with a positive growth rate
    declining_value_customers:
        Customers with a negative growth rate
    avg_growth_rate:
        Mean growth rate in percent (2 decimal places)
    high_potential_customers:
        Customers with high growth potential
    total_potential_value:
        Sum of projected LTV uplift over growing customers
    segment_migrations:
        Proposed segment moves, most common first
    """

    total_customers_tracked: int
    growing_value_customers: int
    declining_value_customers: int
    avg_growth_rate: Decimal
    high_potential_customers: int
    total_potential_value: Decimal
    segment_migrations: tuple[SegmentMigration, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate value growth summary."""
        if self.growing_value_customers + self.declining_value_customers > self.total_customers_tracked:
            raise ValueError(
                "growing_value_customers + declining_value_customers cannot exceed "
                f"total_customers_tracked ({self.total_customers_tracked})"
            )
        if self.total_potential_value < 0:
            raise ValueError(
                f"total_potential_value must be >= 0, got {self.total_potential_value}"
            )


def summarize_value_growth(projections: Sequence[ValueGrowthProjection]) -> ValueGrowthSummary:
    """Aggregate value growth projections into a portfolio summary."""
    total = len(projections)
    migrations: dict[tuple[str, str], list[int]] = {}
    potential_value = Decimal("0")

    for projection in projections:
        if projection.ltv_growth_rate > 0:
            potential_value += projection.estimated_future_ltv - projection.current_ltv
        if projection.has_upgrade_path:
            key = (projection.current_segment, projection.target_segment)
            migrations.setdefault(key, []).append(projection.ltv_growth_rate)

    if total:
        avg_rate = (
            Decimal(sum(p.ltv_growth_rate for p in projections)) / total
        ).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    else:
        avg_rate = Decimal("0.00")

    segment_migrations = tuple(
        SegmentMigration(
            from_segment=from_segment,
            to_segment=to_segment,
            count=len(rates),
            avg_growth_rate=(Decimal(sum(rates)) / len(rates)).quantize(
                RATE_PRECISION, rounding=ROUND_HALF_UP
            ),
        )
        for (from_segment, to_segment), rates in sorted(
            migrations.items(), key=lambda kv: (-len(kv[1]), kv[0])
        )
    )

    return ValueGrowthSummary(
        total_customers_tracked=total,
        growing_value_customers=sum(1 for p in projections if p.ltv_growth_rate > 0),
        declining_value_customers=sum(1 for p in projections if p.ltv_growth_rate < 0),
        avg_growth_rate=avg_rate,
        high_potential_customers=sum(
            1 for p in projections if p.growth_potential is GrowthPotential.HIGH
        ),
        total_potential_value=max(potential_value, Decimal("0")),
        segment_migrations=segment_migrations,
    )
