"""Async orchestration of a customer segmentation run.

Stages:
1. Fetch RFM and LTV rows concurrently, then identities for the union of keys
2. Parse and integrate rows into per-customer metric records
3. Run the batch analysis pipeline
4. Assemble the response envelope

Every failure is converted into a failure envelope; the orchestrator never
raises to its caller. Fetch problems surface as ``DataFetchError``,
everything else as ``AnalysisError``.
"""

import asyncio
import time
from typing import Optional

import structlog
from opentelemetry import trace

from analytics.services.mcp_server.metrics import (
    decrement_active_segmentations,
    increment_active_segmentations,
    record_segmentation_run,
    record_stage_duration,
)
from analytics.services.mcp_server.schemas import (
    SegmentationData,
    SegmentationRequest,
    SegmentationResponse,
)
from analytics.services.mcp_server.sources import AnalysisWindow, MetricsSource
from customer_risk_audit.analyses.churn_risk import (
    ChurnRiskWeights,
    DEFAULT_CHURN_RISK_WEIGHTS,
)
from customer_risk_audit.errors import AnalysisError, DataFetchError
from customer_risk_audit.foundation.metric_record import (
    CustomerIdentity,
    CustomerMetricRecord,
    LTVSourceRow,
    RFMSourceRow,
    integrate_customer_metrics,
    parse_source_rows,
)
from customer_risk_audit.pipeline import AnalysisOptions, analyze_customer_segments

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


async def _fetch_records(
    source: MetricsSource, window: AnalysisWindow
) -> list[CustomerMetricRecord]:
    with tracer.start_as_current_span("segmentation_fetch") as span:
        started = time.perf_counter()
        try:
            rfm_payload, ltv_payload = await asyncio.gather(
                source.fetch_rfm_rows(window), source.fetch_ltv_rows(window)
            )
            rfm_rows = parse_source_rows(rfm_payload, RFMSourceRow)
            ltv_rows = parse_source_rows(ltv_payload, LTVSourceRow)

            customer_ids = list(
                dict.fromkeys(
                    [row.customer_id for row in rfm_rows]
                    + [row.customer_id for row in ltv_rows]
                )
            )
            identity_payload = (
                await source.fetch_identities(customer_ids) if customer_ids else []
            )
            identities = parse_source_rows(identity_payload, CustomerIdentity)
        except DataFetchError:
            raise
        except Exception as e:
            raise DataFetchError(f"Failed to fetch customer metrics: {e}") from e
        record_stage_duration("fetch", time.perf_counter() - started)

        span.set_attribute("rfm_rows", len(rfm_rows))
        span.set_attribute("ltv_rows", len(ltv_rows))
        span.set_attribute("identity_rows", len(identities))
        logger.info(
            "segmentation_fetch_complete",
            rfm_rows=len(rfm_rows),
            ltv_rows=len(ltv_rows),
            identity_rows=len(identities),
        )

    with tracer.start_as_current_span("segmentation_integrate") as span:
        started = time.perf_counter()
        records = integrate_customer_metrics(rfm_rows, ltv_rows, identities)
        record_stage_duration("integrate", time.perf_counter() - started)
        span.set_attribute("customers", len(records))
    return records


async def run_customer_segmentation(
    request: SegmentationRequest,
    source: MetricsSource,
    weights: ChurnRiskWeights = DEFAULT_CHURN_RISK_WEIGHTS,
    parallel: bool = True,
) -> SegmentationResponse:
    """Run one segmentation request end to end.

    Args:
        request: Validated segmentation request (window and stage flags)
        source: Collaborator supplying the store rows
        weights: Churn risk factor weights
        parallel: Allow multiprocessing for large customer bases

    Returns:
        Success envelope with the analysis, or a failure envelope with
        zeroed data and the error message
    """
    window = AnalysisWindow(start_date=request.start_date, end_date=request.end_date)
    options = AnalysisOptions(
        include_rfm_analysis=request.include_rfm_analysis,
        include_churn_risk=request.include_churn_risk,
        include_value_growth=request.include_value_growth,
        include_recommendations=request.include_recommendations,
        weights=weights,
        parallel=parallel,
    )

    started = time.perf_counter()
    increment_active_segmentations()
    status = "success"
    customers = 0
    response: Optional[SegmentationResponse] = None

    logger.info(
        "segmentation_starting",
        start_date=window.start_date.isoformat(),
        end_date=window.end_date.isoformat(),
        include_churn_risk=options.include_churn_risk,
        include_value_growth=options.include_value_growth,
        include_recommendations=options.include_recommendations,
    )

    with tracer.start_as_current_span("customer_segmentation") as span:
        span.set_attribute("window_start", window.start_date.isoformat())
        span.set_attribute("window_end", window.end_date.isoformat())
        try:
            records = await _fetch_records(source, window)
            customers = len(records)

            with tracer.start_as_current_span("segmentation_analyze"):
                stage_started = time.perf_counter()
                try:
                    result = analyze_customer_segments(records, options)
                    data = SegmentationData.model_validate(result.as_dict())
                except Exception as e:
                    raise AnalysisError(f"Customer segmentation failed: {e}") from e
                record_stage_duration("analyze", time.perf_counter() - stage_started)

            response = SegmentationResponse(success=True, data=data)
            span.set_attribute("customers", customers)
            span.set_attribute("churn_assessments", len(data.churn_risks))
            span.set_attribute("recommendations", len(data.recommendations))
        except DataFetchError as e:
            status = "fetch_error"
            logger.error(
                "segmentation_failed", error=str(e), error_type=type(e).__name__
            )
            span.record_exception(e)
            response = SegmentationResponse.failure(str(e))
        except Exception as e:
            status = "analysis_error"
            error = e if isinstance(e, AnalysisError) else AnalysisError(str(e))
            logger.error(
                "segmentation_failed",
                error=str(error),
                error_type=type(error).__name__,
            )
            span.record_exception(e)
            response = SegmentationResponse.failure(str(error))
        finally:
            duration = time.perf_counter() - started
            decrement_active_segmentations()
            record_segmentation_run(status, duration, customers)

    logger.info(
        "segmentation_complete",
        success=response.success,
        status=status,
        customers=customers,
        duration_seconds=round(duration, 3),
    )
    return response
