"""Customer Segmentation MCP Tools

analyze_customer_segmentation runs churn risk scoring, value growth
projection, segment aggregation and recommendations for a date window.
The last envelope is kept in shared state so follow-up tools can drill
into individual customers without re-fetching.
"""

from typing import Optional

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.orchestration import run_customer_segmentation
from analytics.services.mcp_server.schemas import (
    ChurnRiskModel,
    SegmentationRequest,
    SegmentationResponse,
    ValueGrowthModel,
)
from analytics.services.mcp_server.sources import MetricsSource, resolve_metrics_source
from analytics.services.mcp_server.state import get_shared_state
from customer_risk_audit.errors import DataFetchError

logger = structlog.get_logger(__name__)

SEGMENTATION_RESULT_KEY = "segmentation_result"


async def _analyze_customer_segmentation_impl(
    request: SegmentationRequest,
    ctx: Context,
    source: Optional[MetricsSource] = None,
) -> SegmentationResponse:
    """Implementation of the segmentation tool."""
    await ctx.info(
        f"Starting customer segmentation for {request.start_date} to {request.end_date}"
    )

    if source is None:
        try:
            source = resolve_metrics_source()
        except DataFetchError as e:
            logger.error(
                "segmentation_source_unavailable",
                error=str(e),
                error_type=type(e).__name__,
            )
            await ctx.info(f"Customer segmentation failed: {e}")
            return SegmentationResponse.failure(str(e))

    await ctx.report_progress(0.1, "Fetching customer metrics...")
    response = await run_customer_segmentation(request, source)
    await ctx.report_progress(1.0, "Customer segmentation complete")

    if response.success:
        get_shared_state().set(SEGMENTATION_RESULT_KEY, response)
        await ctx.info(
            f"Customer segmentation complete: "
            f"{response.data.segment_analysis.total_customers} customers, "
            f"{len(response.data.recommendations)} recommendations"
        )
    else:
        await ctx.info(f"Customer segmentation failed: {response.error}")

    return response


@mcp.tool()
async def analyze_customer_segmentation(
    request: SegmentationRequest, ctx: Context
) -> SegmentationResponse:
    """
    Score churn risk and project value growth for the customer base.

    Reads RFM, LTV and identity metrics (from a loaded snapshot, or the
    configured store) and returns:
    - churnRisks: per-customer risk score, tier, factors and potential loss
    - valueGrowth: per-customer LTV projection and segment upgrade path
    - segmentAnalysis: segment counts, average RFM and risk tier distribution
    - recommendations: prioritised portfolio actions

    Failures are reported in the envelope (success=false) rather than raised.

    Args:
        request: Date window (defaults to the trailing 90 days) and stage flags

    Returns:
        Segmentation envelope
    """
    return await _analyze_customer_segmentation_impl(request, ctx)


class CustomerDetailRequest(BaseModel):
    """Request for one customer's results from the last segmentation run."""

    customer_id: str = Field(description="Customer identifier")


class CustomerDetailResponse(BaseModel):
    """One customer's churn risk and value growth from the last run."""

    customer_id: str
    found: bool
    churn_risk: Optional[ChurnRiskModel] = None
    value_growth: Optional[ValueGrowthModel] = None


async def _get_customer_segmentation_detail_impl(
    request: CustomerDetailRequest, ctx: Context
) -> CustomerDetailResponse:
    response: Optional[SegmentationResponse] = get_shared_state().get(
        SEGMENTATION_RESULT_KEY
    )
    if response is None:
        raise ValueError(
            "No segmentation results found. Run analyze_customer_segmentation first."
        )

    churn_risk = next(
        (r for r in response.data.churn_risks if r.customer_id == request.customer_id),
        None,
    )
    value_growth = next(
        (g for g in response.data.value_growth if g.customer_id == request.customer_id),
        None,
    )
    found = churn_risk is not None or value_growth is not None
    await ctx.info(
        f"Customer {request.customer_id} "
        f"{'found' if found else 'not found'} in last segmentation run"
    )
    return CustomerDetailResponse(
        customer_id=request.customer_id,
        found=found,
        churn_risk=churn_risk,
        value_growth=value_growth,
    )


@mcp.tool()
async def get_customer_segmentation_detail(
    request: CustomerDetailRequest, ctx: Context
) -> CustomerDetailResponse:
    """
    Look up one customer's churn risk and value growth from the last run.

    Requires a prior successful analyze_customer_segmentation call.

    Args:
        request: Customer identifier

    Returns:
        The customer's churn risk assessment and growth projection, if present
    """
    return await _get_customer_segmentation_detail_impl(request, ctx)
