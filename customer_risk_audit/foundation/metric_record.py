"""Per-customer metric records and the join that produces them.

The store exposes three independently keyed collections for a customer:

- RFM metrics (recency, frequency, monetary, segment, lifecycle stage)
- LTV metrics (purchase cadence, average order value, estimated LTV)
- Identity (display name)

Each collection is first parsed into its own typed row, recovering
malformed numeric values locally, and only then joined into a single
:class:`CustomerMetricRecord`. A customer without RFM data never produces a
record, since both churn scoring and value projection need an RFM basis.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Sequence, TypeVar

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER_NAME = "Unknown"
UNKNOWN_SEGMENT = "Unknown"

# Column names the store uses for the shared customer key, in lookup order
CUSTOMER_KEY_COLUMNS = ("user_id", "customer_id", "id")

_ZERO = Decimal("0")

# Values at or above 10**MAX_MAGNITUDE are treated as out of range
MAX_MAGNITUDE = 15


def customer_key(row: Mapping[str, Any]) -> str:
    """Return the first non-blank value among ``CUSTOMER_KEY_COLUMNS``."""
    for column in CUSTOMER_KEY_COLUMNS:
        value = row.get(column)
        if value is not None and str(value).strip():
            return str(value)
    raise ValueError(f"Row has no customer identifier (expected one of {CUSTOMER_KEY_COLUMNS})")


def _coerce_decimal(value: Any, field_name: str, customer_id: str) -> Decimal:
    """Convert a numeric store value to a non-negative Decimal, defaulting to 0."""
    if value is None:
        return _ZERO
    if isinstance(value, bool):
        logger.warning(
            "Ignoring boolean %s=%r for customer %s; using 0", field_name, value, customer_id
        )
        return _ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning(
            "Malformed %s=%r for customer %s; using 0", field_name, value, customer_id
        )
        return _ZERO
    if not result.is_finite() or result < 0 or result.adjusted() >= MAX_MAGNITUDE:
        logger.warning(
            "Out of range %s=%r for customer %s; using 0", field_name, value, customer_id
        )
        return _ZERO
    return result


def _coerce_float(value: Any, field_name: str, customer_id: str) -> float:
    return float(_coerce_decimal(value, field_name, customer_id))


def _coerce_days(value: Any, field_name: str, customer_id: str) -> int:
    return int(
        _coerce_decimal(value, field_name, customer_id).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )


def _coerce_date(value: Any, customer_id: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        logger.warning(
            "Malformed last_purchase_date=%r for customer %s; ignoring", value, customer_id
        )
        return None


def _coerce_label(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class CustomerIdentity:
    """Identity row for a customer.

    Attributes
    ----------
    customer_id:
        Shared customer key
    full_name:
        Display name, if the store has one
    email:
        Contact address, if the store has one
    """

    customer_id: str
    full_name: str | None = None
    email: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> CustomerIdentity:
        full_name = _coerce_label(row.get("full_name"))
        email = row.get("email")
        return cls(
            customer_id=customer_key(row),
            full_name=full_name or None,
            email=str(email) if email else None,
        )


@dataclass(frozen=True)
class RFMSourceRow:
    """RFM metrics for a customer as supplied by the lifecycle metrics view."""

    customer_id: str
    recency_days: int
    frequency: float
    monetary: Decimal
    rfm_segment: str
    lifecycle_stage: str
    last_purchase_date: date | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> RFMSourceRow:
        customer_id = customer_key(row)
        return cls(
            customer_id=customer_id,
            recency_days=_coerce_days(row.get("recency_days"), "recency_days", customer_id),
            frequency=_coerce_float(row.get("frequency"), "frequency", customer_id),
            monetary=_coerce_decimal(row.get("monetary"), "monetary", customer_id),
            rfm_segment=_coerce_label(row.get("rfm_segment")),
            lifecycle_stage=_coerce_label(row.get("lifecycle_stage")),
            last_purchase_date=_coerce_date(row.get("last_purchase_date"), customer_id),
        )


@dataclass(frozen=True)
class LTVSourceRow:
    """Lifetime value metrics for a customer."""

    customer_id: str
    purchase_frequency_per_month: float
    average_order_value: Decimal
    estimated_ltv: Decimal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> LTVSourceRow:
        customer_id = customer_key(row)
        aov = row.get("aov", row.get("average_order_value"))
        return cls(
            customer_id=customer_id,
            purchase_frequency_per_month=_coerce_float(
                row.get("purchase_frequency_per_month"),
                "purchase_frequency_per_month",
                customer_id,
            ),
            average_order_value=_coerce_decimal(aov, "aov", customer_id),
            estimated_ltv=_coerce_decimal(
                row.get("estimated_ltv"), "estimated_ltv", customer_id
            ),
        )


_Row = TypeVar("_Row", CustomerIdentity, RFMSourceRow, LTVSourceRow)


def parse_source_rows(
    rows: Iterable[Mapping[str, Any]], row_type: type[_Row]
) -> list[_Row]:
    """Parse raw store rows into typed source rows.

    Rows without a customer identifier cannot be joined and are skipped
    with a warning; every other per-row problem is recovered by
    ``row_type.from_row``.
    """
    parsed: list[_Row] = []
    for index, row in enumerate(rows):
        try:
            parsed.append(row_type.from_row(row))
        except (ValueError, ArithmeticError) as exc:
            logger.warning("Skipping %s row %d: %s", row_type.__name__, index, exc)
    return parsed


@dataclass(frozen=True)
class CustomerMetricRecord:
    """Integrated RFM and LTV snapshot for a single customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier
    full_name:
        Display name ("Unknown" when the store has none)
    recency_days:
        Days since last purchase
    frequency:
        Purchase count in the analysis window
    monetary_value:
        Total historical spend
    rfm_segment:
        RFM segment label as supplied by the store
    lifecycle_stage:
        Lifecycle stage label as supplied by the store
    last_purchase_date:
        Date of the most recent purchase, if known
    purchase_frequency_per_month:
        Average purchases per month (0 when no LTV data)
    average_order_value:
        Average order value (0 when no LTV data)
    estimated_ltv:
        Model-estimated lifetime value (0 when no LTV data)
    """

    customer_id: str
    full_name: str
    recency_days: int
    frequency: float
    monetary_value: Decimal
    rfm_segment: str
    lifecycle_stage: str
    last_purchase_date: date | None = None
    purchase_frequency_per_month: float = 0.0
    average_order_value: Decimal = _ZERO
    estimated_ltv: Decimal = _ZERO

    def __post_init__(self) -> None:
        """Validate metric ranges."""
        if self.recency_days < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency_days} (customer_id={self.customer_id})"
            )
        for field_name in (
            "frequency",
            "monetary_value",
            "purchase_frequency_per_month",
            "average_order_value",
            "estimated_ltv",
        ):
            value = getattr(self, field_name)
            if isinstance(value, float) and math.isnan(value):
                raise ValueError(
                    f"{field_name} cannot be NaN (customer_id={self.customer_id})"
                )
            if (isinstance(value, float) and math.isinf(value)) or (
                isinstance(value, Decimal) and not value.is_finite()
            ):
                raise ValueError(
                    f"{field_name} must be finite (customer_id={self.customer_id})"
                )
            if value < 0:
                raise ValueError(
                    f"{field_name} cannot be negative: {value} (customer_id={self.customer_id})"
                )

    @property
    def segment_label(self) -> str:
        """Segment label used for grouping, "Unknown" when blank."""
        return self.rfm_segment or UNKNOWN_SEGMENT


def integrate_customer_metrics(
    rfm_rows: Sequence[RFMSourceRow],
    ltv_rows: Sequence[LTVSourceRow],
    identities: Sequence[CustomerIdentity],
) -> list[CustomerMetricRecord]:
    """Join RFM, LTV and identity rows into one record per customer.

    Parameters
    ----------
    rfm_rows:
        RFM metrics keyed by customer. Only customers present here
        produce a record.
    ltv_rows:
        LTV metrics keyed by customer. Customers missing from this
        collection get zero LTV fields; LTV-only customers are dropped.
    identities:
        Customer identity rows. A customer without an identity row, or
        with a blank name, is named "Unknown".

    Returns
    -------
    list[CustomerMetricRecord]
        Customers with identity rows first (in identity order), followed by
        customers known only to the RFM collection (in RFM order). When a key
        appears more than once in a collection, the last row wins.

    Examples
    --------
    >>> rfm = [RFMSourceRow("C1", 12, 3.0, Decimal("300"), "Champions", "Active")]
    >>> ltv = [LTVSourceRow("C1", 1.5, Decimal("100"), Decimal("1800"))]
    >>> records = integrate_customer_metrics(rfm, ltv, [CustomerIdentity("C1", "Ada")])
    >>> records[0].full_name, records[0].estimated_ltv
    ('Ada', Decimal('1800'))
    """
    customer_order: dict[str, None] = {}
    names: dict[str, str] = {}
    for identity in identities:
        customer_order.setdefault(identity.customer_id, None)
        names[identity.customer_id] = identity.full_name or UNKNOWN_CUSTOMER_NAME

    rfm_by_customer: dict[str, RFMSourceRow] = {}
    for rfm in rfm_rows:
        customer_order.setdefault(rfm.customer_id, None)
        rfm_by_customer[rfm.customer_id] = rfm

    ltv_by_customer = {ltv.customer_id: ltv for ltv in ltv_rows}

    def has_rfm_basis(customer_id: str) -> bool:
        return customer_id in rfm_by_customer

    records: list[CustomerMetricRecord] = []
    for customer_id in customer_order:
        if not has_rfm_basis(customer_id):
            continue
        rfm = rfm_by_customer[customer_id]
        ltv = ltv_by_customer.get(customer_id)
        records.append(
            CustomerMetricRecord(
                customer_id=customer_id,
                full_name=names.get(customer_id, UNKNOWN_CUSTOMER_NAME),
                recency_days=rfm.recency_days,
                frequency=rfm.frequency,
                monetary_value=rfm.monetary,
                rfm_segment=rfm.rfm_segment,
                lifecycle_stage=rfm.lifecycle_stage,
                last_purchase_date=rfm.last_purchase_date,
                purchase_frequency_per_month=(
                    ltv.purchase_frequency_per_month if ltv else 0.0
                ),
                average_order_value=ltv.average_order_value if ltv else _ZERO,
                estimated_ltv=ltv.estimated_ltv if ltv else _ZERO,
            )
        )

    dropped = len(customer_order) - len(records)
    if dropped:
        logger.debug("Dropped %d customers without RFM data", dropped)
    return records
