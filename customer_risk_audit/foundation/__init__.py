"""Foundational building blocks for customer lifecycle scoring.

This package exposes the segment and lifecycle taxonomies and the
per-customer metric record that every analysis consumes, together with
the join that builds those records from the store's RFM, LTV and
identity collections.
"""

from .metric_record import (
    CustomerIdentity,
    CustomerMetricRecord,
    LTVSourceRow,
    RFMSourceRow,
    UNKNOWN_CUSTOMER_NAME,
    integrate_customer_metrics,
    parse_source_rows,
)
from .taxonomy import (
    GrowthPotential,
    LifecycleStage,
    LtvTrend,
    RecommendationPriority,
    RfmSegment,
    RiskLevel,
)

__all__ = [
    "CustomerIdentity",
    "CustomerMetricRecord",
    "LTVSourceRow",
    "RFMSourceRow",
    "UNKNOWN_CUSTOMER_NAME",
    "integrate_customer_metrics",
    "parse_source_rows",
    "GrowthPotential",
    "LifecycleStage",
    "LtvTrend",
    "RecommendationPriority",
    "RfmSegment",
    "RiskLevel",
]
