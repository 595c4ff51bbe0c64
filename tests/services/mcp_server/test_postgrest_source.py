"""Tests for the PostgREST metrics source."""

from datetime import date

import httpx
import pytest
from tenacity import wait_none

from analytics.services.mcp_server.sources import (
    AnalysisWindow,
    MetricsSource,
    PostgrestMetricsSource,
)
from customer_risk_audit.errors import DataFetchError

WINDOW = AnalysisWindow(start_date=date(2024, 1, 1), end_date=date(2024, 3, 31))


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Retry immediately instead of backing off."""
    monkeypatch.setattr(PostgrestMetricsSource._get_rows.retry, "wait", wait_none())


def make_source(handler):
    client = httpx.AsyncClient(
        base_url="https://example.supabase.co/rest/v1",
        transport=httpx.MockTransport(handler),
    )
    return PostgrestMetricsSource("https://example.supabase.co", "anon-key", client=client)


class TestPostgrestMetricsSource:
    """Test queries and error mapping."""

    def test_satisfies_protocol(self):
        source = PostgrestMetricsSource("https://example.supabase.co/", "anon-key")
        assert isinstance(source, MetricsSource)
        assert source.rest_url == "https://example.supabase.co/rest/v1"

    @pytest.mark.asyncio
    async def test_rfm_query_filters_by_window_end(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"user_id": "C1"}])

        rows = await make_source(handler).fetch_rfm_rows(WINDOW)

        assert rows == [{"user_id": "C1"}]
        request = seen[0]
        assert request.url.path == "/rest/v1/customer_rfm_lifecycle_metrics"
        assert request.url.params["last_purchase_date"] == "lte.2024-03-31"
        assert "rfm_segment" in request.url.params["select"]

    @pytest.mark.asyncio
    async def test_ltv_query_has_no_date_filter(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        assert await make_source(handler).fetch_ltv_rows(WINDOW) == []
        assert seen[0].url.path == "/rest/v1/customer_ltv_metrics"
        assert "last_purchase_date" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_identities_are_batched(self):
        seen = []

        def handler(request):
            seen.append(request.url.params["id"])
            return httpx.Response(200, json=[])

        ids = [f"C{i}" for i in range(450)]
        await make_source(handler).fetch_identities(ids)

        assert len(seen) == 3
        assert seen[0].startswith('in.("C0","C1",')
        assert seen[2].endswith('"C449")')

    @pytest.mark.asyncio
    async def test_http_error_status_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"message": "unavailable"})

        with pytest.raises(DataFetchError, match="HTTP 503"):
            await make_source(handler).fetch_ltv_rows(WINDOW)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[{"user_id": "C1"}])

        rows = await make_source(handler).fetch_ltv_rows(WINDOW)
        assert rows == [{"user_id": "C1"}]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_error_gives_up_after_three_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DataFetchError, match="connection refused"):
            await make_source(handler).fetch_ltv_rows(WINDOW)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_non_list_payload_is_rejected(self):
        def handler(request):
            return httpx.Response(200, json={"user_id": "C1"})

        with pytest.raises(DataFetchError, match="Expected a list of rows"):
            await make_source(handler).fetch_ltv_rows(WINDOW)

    @pytest.mark.asyncio
    async def test_undecodable_body_is_rejected(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(DataFetchError, match="Malformed response"):
            await make_source(handler).fetch_ltv_rows(WINDOW)


class TestFromEnv:
    def test_missing_configuration(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        with pytest.raises(DataFetchError, match="SUPABASE_URL"):
            PostgrestMetricsSource.from_env()

    def test_reads_configuration(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
        monkeypatch.setenv("SEGMENTATION_FETCH_TIMEOUT", "5")
        source = PostgrestMetricsSource.from_env()
        assert source.rest_url == "https://abc.supabase.co/rest/v1"
        assert source.timeout == 5.0
