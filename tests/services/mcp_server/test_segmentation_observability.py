"""Test observability wiring for segmentation runs.

This module tests:
1. Prometheus counters recorded by the orchestrator
2. Trace sampler configuration
3. Retry configuration on the store client
"""

from datetime import date

import pytest
from opentelemetry.sdk.trace.sampling import ParentBasedTraceIdRatio, TraceIdRatioBased
from prometheus_client import REGISTRY

from analytics.services.mcp_server.metrics import get_metrics_text, record_stage_duration
from analytics.services.mcp_server.observability import create_sampler
from analytics.services.mcp_server.orchestration import run_customer_segmentation
from analytics.services.mcp_server.schemas import SegmentationRequest
from analytics.services.mcp_server.sources import (
    InMemoryMetricsSource,
    PostgrestMetricsSource,
)


def run_count(status):
    return REGISTRY.get_sample_value("segmentation_runs_total", {"status": status}) or 0.0


@pytest.mark.asyncio
async def test_successful_run_is_counted():
    """Test the orchestrator increments the success counter."""
    before = run_count("success")
    request = SegmentationRequest(start_date=date(2024, 1, 1), end_date=date(2024, 3, 31))

    await run_customer_segmentation(request, InMemoryMetricsSource())

    assert run_count("success") == before + 1
    assert REGISTRY.get_sample_value("active_segmentations") == 0


def test_stage_durations_are_exported():
    record_stage_duration("fetch", 0.2)
    text = get_metrics_text().decode("utf-8")
    assert 'segmentation_stage_duration_seconds_count{stage="fetch"}' in text


@pytest.mark.parametrize(
    "rate,sampler_type",
    [
        (0.0, TraceIdRatioBased),
        (-1.0, TraceIdRatioBased),
        (0.5, ParentBasedTraceIdRatio),
        (2.0, ParentBasedTraceIdRatio),
    ],
)
def test_create_sampler(rate, sampler_type):
    assert isinstance(create_sampler(rate), sampler_type)


def test_store_client_retries_transport_errors():
    """Test the store request is wrapped in a tenacity retry."""
    retrying = PostgrestMetricsSource._get_rows.retry
    assert retrying.stop.max_attempt_number == 3
