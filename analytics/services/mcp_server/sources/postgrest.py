"""Metrics source reading the store's PostgREST API.

Configuration (environment variables):

- ``SUPABASE_URL``: base URL of the project, e.g. ``https://abc.supabase.co``
- ``SUPABASE_ANON_KEY``: API key sent as ``apikey`` and bearer token
- ``SEGMENTATION_FETCH_TIMEOUT``: per-request timeout in seconds (default 30)

Transport failures (connection errors, timeouts) are retried up to 3 times
with exponential backoff. HTTP error statuses and malformed payloads are not
retried; they surface as :class:`DataFetchError`.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from analytics.services.mcp_server.sources.base import (
    AnalysisWindow,
    Row,
    ensure_rows,
)
from customer_risk_audit.errors import DataFetchError

logger = structlog.get_logger(__name__)

RFM_TABLE = "customer_rfm_lifecycle_metrics"
LTV_TABLE = "customer_ltv_metrics"
CUSTOMERS_TABLE = "customers"

RFM_COLUMNS = (
    "user_id,recency_days,frequency,monetary,rfm_segment,"
    "lifecycle_stage,last_purchase_date"
)
LTV_COLUMNS = "user_id,purchase_frequency_per_month,aov,estimated_ltv"
CUSTOMER_COLUMNS = "id,full_name,email"

DEFAULT_TIMEOUT_SECONDS = 30.0
IDENTITY_BATCH_SIZE = 200


class PostgrestMetricsSource:
    """Fetch customer metric collections over PostgREST with ``httpx``.

    Parameters
    ----------
    base_url:
        Project URL; ``/rest/v1`` is appended
    api_key:
        Key sent in the ``apikey`` and ``Authorization`` headers
    timeout:
        Per-request timeout in seconds
    client:
        Optional pre-built client (its base URL and headers are used as-is,
        and it is not closed by this source)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.rest_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._client = client

    @classmethod
    def from_env(cls) -> "PostgrestMetricsSource":
        """Build a source from ``SUPABASE_URL`` / ``SUPABASE_ANON_KEY``.

        Raises:
            DataFetchError: If the URL or key is not configured
        """
        base_url = os.getenv("SUPABASE_URL")
        api_key = os.getenv("SUPABASE_ANON_KEY")
        if not base_url or not api_key:
            raise DataFetchError(
                "SUPABASE_URL and SUPABASE_ANON_KEY must be set to read customer metrics"
            )
        timeout = float(
            os.getenv("SEGMENTATION_FETCH_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))
        )
        return cls(base_url=base_url, api_key=api_key, timeout=timeout)

    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            base_url=self.rest_url, headers=self._headers, timeout=self.timeout
        ) as client:
            yield client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get_rows(
        self, client: httpx.AsyncClient, table: str, params: dict[str, str]
    ) -> list[Row]:
        response = await client.get(f"/{table}", params=params)
        response.raise_for_status()
        return ensure_rows(response.json(), table)

    async def _fetch(self, table: str, params: dict[str, str]) -> list[Row]:
        try:
            async with self._open_client() as client:
                rows = await self._get_rows(client, table, params)
        except httpx.HTTPStatusError as e:
            logger.error(
                "postgrest_fetch_failed",
                table=table,
                status_code=e.response.status_code,
                error_type=type(e).__name__,
            )
            raise DataFetchError(
                f"Failed to fetch {table}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "postgrest_fetch_failed",
                table=table,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DataFetchError(f"Failed to fetch {table}: {e}") from e
        except ValueError as e:
            # Undecodable JSON body
            raise DataFetchError(f"Malformed response from {table}: {e}") from e

        logger.debug("postgrest_rows_fetched", table=table, rows=len(rows))
        return rows

    async def fetch_rfm_rows(self, window: AnalysisWindow) -> list[Row]:
        return await self._fetch(
            RFM_TABLE,
            {
                "select": RFM_COLUMNS,
                "last_purchase_date": f"lte.{window.end_date.isoformat()}",
            },
        )

    async def fetch_ltv_rows(self, window: AnalysisWindow) -> list[Row]:
        return await self._fetch(LTV_TABLE, {"select": LTV_COLUMNS})

    async def fetch_identities(self, customer_ids: Sequence[str]) -> list[Row]:
        rows: list[Row] = []
        ids = list(customer_ids)
        for offset in range(0, len(ids), IDENTITY_BATCH_SIZE):
            batch = ids[offset : offset + IDENTITY_BATCH_SIZE]
            rows.extend(
                await self._fetch(
                    CUSTOMERS_TABLE,
                    {
                        "select": CUSTOMER_COLUMNS,
                        "id": "in.({})".format(",".join(f'"{i}"' for i in batch)),
                    },
                )
            )
        return rows
