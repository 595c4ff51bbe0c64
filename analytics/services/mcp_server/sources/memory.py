"""In-memory metrics source backed by a snapshot of the store collections."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional, Sequence

import structlog

from analytics.services.mcp_server.sources.base import (
    AnalysisWindow,
    Row,
    ensure_rows,
)
from customer_risk_audit.foundation.metric_record import customer_key

logger = structlog.get_logger(__name__)


def _purchase_date(row: Row) -> Optional[date]:
    value = row.get("last_purchase_date")
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


class InMemoryMetricsSource:
    """Serve RFM, LTV and identity rows from in-memory lists.

    RFM rows whose last purchase falls after the window end are excluded.
    Unlike the store, which drops rows with a null purchase date, rows
    without a readable purchase date are kept. Identities are matched on
    the same customer key columns the row parser reads.
    """

    def __init__(
        self,
        rfm_rows: Sequence[Row] = (),
        ltv_rows: Sequence[Row] = (),
        customers: Sequence[Row] = (),
    ):
        self._rfm_rows = ensure_rows(list(rfm_rows), "rfm")
        self._ltv_rows = ensure_rows(list(ltv_rows), "ltv")
        self._customers = ensure_rows(list(customers), "customers")

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> "InMemoryMetricsSource":
        """Build a source from a ``{rfm, ltv, customers}`` snapshot mapping."""
        return cls(
            rfm_rows=snapshot.get("rfm") or [],
            ltv_rows=snapshot.get("ltv") or [],
            customers=snapshot.get("customers") or [],
        )

    async def fetch_rfm_rows(self, window: AnalysisWindow) -> list[Row]:
        rows = []
        for row in self._rfm_rows:
            purchased = _purchase_date(row)
            if purchased is None or purchased <= window.end_date:
                rows.append(row)
        logger.debug(
            "memory_rfm_rows_served", total=len(self._rfm_rows), served=len(rows)
        )
        return rows

    async def fetch_ltv_rows(self, window: AnalysisWindow) -> list[Row]:
        return list(self._ltv_rows)

    async def fetch_identities(self, customer_ids: Sequence[str]) -> list[Row]:
        wanted = set(customer_ids)
        rows = []
        for row in self._customers:
            try:
                key = customer_key(row)
            except ValueError:
                continue
            if key in wanted:
                rows.append(row)
        return rows
