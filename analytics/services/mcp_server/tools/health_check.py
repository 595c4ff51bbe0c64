"""Health Check MCP Tool

Reports server health and whether a segmentation can run:
1. Shared state availability
2. Metrics source (loaded snapshot or configured store)
3. Availability of a previous segmentation result
"""

import os
import time
from datetime import datetime, timezone

import structlog
from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.sources import METRICS_SOURCE_KEY
from analytics.services.mcp_server.state import get_shared_state
from analytics.services.mcp_server.tools.segmentation import SEGMENTATION_RESULT_KEY

logger = structlog.get_logger(__name__)


class HealthCheckResponse(BaseModel):
    """Health check response with system status."""

    status: str = Field(
        description="Overall health status: 'healthy', 'degraded', or 'unhealthy'"
    )
    timestamp: str = Field(description="ISO timestamp of health check")
    checks: dict[str, str] = Field(description="Individual component health checks")
    uptime_seconds: float = Field(description="Server uptime in seconds")
    last_result_available: bool = Field(
        description="Whether a segmentation result is cached for follow-up tools"
    )


# Track server start time
_SERVER_START_TIME = time.time()


async def _health_check_impl(ctx: Context) -> HealthCheckResponse:
    logger.info("health_check_starting")

    checks: dict[str, str] = {}
    status = "healthy"

    shared_state = get_shared_state()
    checks["shared_state"] = f"healthy ({len(shared_state.keys())} items)"

    if shared_state.has(METRICS_SOURCE_KEY):
        checks["metrics_source"] = "snapshot loaded"
    elif os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_ANON_KEY"):
        checks["metrics_source"] = "store configured"
    else:
        checks["metrics_source"] = (
            "not configured (set SUPABASE_URL and SUPABASE_ANON_KEY "
            "or use load_metrics_snapshot)"
        )
        status = "degraded"

    last_result_available = shared_state.has(SEGMENTATION_RESULT_KEY)
    uptime_seconds = time.time() - _SERVER_START_TIME

    logger.info(
        "health_check_complete",
        status=status,
        checks=checks,
        uptime_seconds=uptime_seconds,
    )

    return HealthCheckResponse(
        status=status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
        uptime_seconds=uptime_seconds,
        last_result_available=last_result_available,
    )


@mcp.tool()
async def health_check(ctx: Context) -> HealthCheckResponse:
    """
    Check health of the segmentation server and its data source.

    Returns:
        HealthCheckResponse with component checks
    """
    return await _health_check_impl(ctx)
