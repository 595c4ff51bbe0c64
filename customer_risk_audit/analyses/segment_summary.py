"""Portfolio-level segment summary.

Reduces the customer base into segment counts, average RFM values and the
distribution of churn risk tiers. Risk tiers are read from the churn risk
assessments rather than recomputed, so the summary always agrees with the
per-customer scores it is reported alongside.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from customer_risk_audit.analyses.churn_risk import ChurnRiskAssessment
from customer_risk_audit.foundation.metric_record import CustomerMetricRecord
from customer_risk_audit.foundation.taxonomy import RiskLevel

FREQUENCY_PRECISION = Decimal("0.01")
WHOLE_NUMBER = Decimal("1")


@dataclass(frozen=True)
class AverageRfmScores:
    """Arithmetic means of the raw RFM values.

    Attributes
    ----------
    recency:
        Mean days since last purchase, rounded to a whole day
    frequency:
        Mean purchase count, rounded to 2 decimal places
    monetary:
        Mean historical spend, rounded to a whole amount
    """

    recency: int
    frequency: Decimal
    monetary: int


@dataclass(frozen=True)
class SegmentAnalysisSummary:
    """Segment summary for one analysis run.

    Attributes
    ----------
    total_customers:
        Number of customers analysed
    segment_distribution:
        Customers per RFM segment label
    average_rfm_scores:
        Mean recency, frequency and monetary value
    risk_level_distribution:
        Customers per risk tier; empty when churn scoring did not run
    """

    total_customers: int
    segment_distribution: dict[str, int]
    average_rfm_scores: AverageRfmScores
    risk_level_distribution: dict[str, int]

    def __post_init__(self) -> None:
        """Validate segment summary."""
        if self.total_customers < 0:
            raise ValueError(f"total_customers must be >= 0, got {self.total_customers}")
        segment_total = sum(self.segment_distribution.values())
        if segment_total != self.total_customers:
            raise ValueError(
                f"segment_distribution counts ({segment_total}) must sum to "
                f"total_customers ({self.total_customers})"
            )
        if self.risk_level_distribution:
            risk_total = sum(self.risk_level_distribution.values())
            if risk_total != self.total_customers:
                raise ValueError(
                    f"risk_level_distribution counts ({risk_total}) must sum to "
                    f"total_customers ({self.total_customers})"
                )


def _round_whole(value: Decimal) -> int:
    return int(value.quantize(WHOLE_NUMBER, rounding=ROUND_HALF_UP))


def calculate_segment_analysis(
    records: Sequence[CustomerMetricRecord],
    churn_risks: Sequence[ChurnRiskAssessment] = (),
) -> SegmentAnalysisSummary:
    """Summarise segments, average RFM values and risk tiers.

    Parameters
    ----------
    records:
        Integrated customer metrics
    churn_risks:
        Churn risk assessments for the same customers. When empty (churn
        scoring disabled), risk_level_distribution is empty.

    Returns
    -------
    SegmentAnalysisSummary
        All-zero summary with empty distributions when there are no records.

    Examples
    --------
    >>> from decimal import Decimal
    >>> records = [
    ...     CustomerMetricRecord("C1", "Ada", 10, 5, Decimal("500"), "Champions", "Active"),
    ...     CustomerMetricRecord("C2", "Bo", 21, 2, Decimal("150"), "At Risk", "At Risk"),
    ... ]
    >>> summary = calculate_segment_analysis(records)
    >>> summary.segment_distribution
    {'Champions': 1, 'At Risk': 1}
    >>> summary.average_rfm_scores.recency, summary.average_rfm_scores.monetary
    (16, 325)
    """
    total_customers = len(records)
    if total_customers == 0:
        return SegmentAnalysisSummary(
            total_customers=0,
            segment_distribution={},
            average_rfm_scores=AverageRfmScores(
                recency=0, frequency=Decimal("0"), monetary=0
            ),
            risk_level_distribution={},
        )

    segment_distribution: dict[str, int] = {}
    total_recency = Decimal("0")
    total_frequency = Decimal("0")
    total_monetary = Decimal("0")

    for record in records:
        label = record.segment_label
        segment_distribution[label] = segment_distribution.get(label, 0) + 1
        total_recency += record.recency_days
        total_frequency += Decimal(str(record.frequency))
        total_monetary += record.monetary_value

    risk_level_distribution: dict[str, int] = {}
    if churn_risks:
        risk_level_distribution = {level.value: 0 for level in RiskLevel}
        for risk in churn_risks:
            risk_level_distribution[risk.risk_level.value] += 1

    return SegmentAnalysisSummary(
        total_customers=total_customers,
        segment_distribution=segment_distribution,
        average_rfm_scores=AverageRfmScores(
            recency=_round_whole(total_recency / total_customers),
            frequency=(total_frequency / total_customers).quantize(
                FREQUENCY_PRECISION, rounding=ROUND_HALF_UP
            ),
            monetary=_round_whole(total_monetary / total_customers),
        ),
        risk_level_distribution=risk_level_distribution,
    )
