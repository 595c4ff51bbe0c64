"""Data-fetch collaborator contract for segmentation runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol, Sequence, runtime_checkable

from customer_risk_audit.errors import DataFetchError

Row = dict[str, Any]


@dataclass(frozen=True)
class AnalysisWindow:
    """Inclusive date window a segmentation run covers."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date ({self.start_date}) must not be after end_date ({self.end_date})"
            )


@runtime_checkable
class MetricsSource(Protocol):
    """Supplies raw store rows for the three customer collections.

    Implementations raise :class:`DataFetchError` when the store is
    unavailable or returns something other than a list of objects. Any
    retrying happens inside the implementation.
    """

    async def fetch_rfm_rows(self, window: AnalysisWindow) -> list[Row]:
        """RFM and lifecycle rows with last_purchase_date on or before the window end."""
        ...

    async def fetch_ltv_rows(self, window: AnalysisWindow) -> list[Row]:
        """LTV rows for every customer."""
        ...

    async def fetch_identities(self, customer_ids: Sequence[str]) -> list[Row]:
        """Identity rows for the given customer ids."""
        ...


def ensure_rows(payload: Any, collection: str) -> list[Row]:
    """Check that a store payload is a list of JSON objects."""
    if not isinstance(payload, list):
        raise DataFetchError(
            f"Expected a list of rows from {collection}, got {type(payload).__name__}"
        )
    for index, row in enumerate(payload):
        if not isinstance(row, dict):
            raise DataFetchError(
                f"Row {index} from {collection} is {type(row).__name__}, expected an object"
            )
    return payload
