"""Snapshot loading tool for MCP server.

Loads a JSON snapshot of the store collections ({rfm, ltv, customers}) and
installs it as the metrics source for later segmentation runs.
"""

import os
from pathlib import Path

from fastmcp import Context
from pydantic import BaseModel, Field

from analytics.services.mcp_server.instance import mcp
from analytics.services.mcp_server.sources import (
    METRICS_SOURCE_KEY,
    InMemoryMetricsSource,
)
from analytics.services.mcp_server.state import get_shared_state
from customer_risk_audit.cli import load_snapshot


def _snapshot_base_dir() -> Path:
    return Path(os.getenv("SEGMENTATION_SNAPSHOT_DIR", str(Path.cwd()))).resolve()


class LoadSnapshotRequest(BaseModel):
    """Request to load a metrics snapshot from file."""

    file_path: str = Field(
        description="Path to the snapshot JSON (relative to the snapshot directory or absolute)"
    )


class LoadSnapshotResponse(BaseModel):
    """Summary of the loaded snapshot."""

    file_path: str
    rfm_rows: int
    ltv_rows: int
    customer_rows: int
    message: str


async def _load_metrics_snapshot_impl(
    request: LoadSnapshotRequest, ctx: Context
) -> LoadSnapshotResponse:
    base_dir = _snapshot_base_dir()
    file_path = Path(request.file_path)
    if not file_path.is_absolute():
        file_path = base_dir / file_path

    # Only files within the snapshot directory can be loaded
    resolved_path = file_path.resolve()
    try:
        resolved_path.relative_to(base_dir)
    except ValueError as e:
        raise ValueError(
            f"Path {resolved_path} is outside allowed directory {base_dir}. "
            f"Only files within the snapshot directory can be loaded."
        ) from e

    if not resolved_path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {resolved_path}")

    snapshot = load_snapshot(resolved_path)
    source = InMemoryMetricsSource.from_snapshot(snapshot)
    get_shared_state().set(METRICS_SOURCE_KEY, source)

    message = (
        f"Loaded {len(snapshot['rfm'])} RFM, {len(snapshot['ltv'])} LTV and "
        f"{len(snapshot['customers'])} customer rows from {resolved_path.name}"
    )
    await ctx.info(message)

    return LoadSnapshotResponse(
        file_path=str(resolved_path),
        rfm_rows=len(snapshot["rfm"]),
        ltv_rows=len(snapshot["ltv"]),
        customer_rows=len(snapshot["customers"]),
        message=message,
    )


@mcp.tool()
async def load_metrics_snapshot(
    request: LoadSnapshotRequest, ctx: Context
) -> LoadSnapshotResponse:
    """Load a customer metrics snapshot for offline segmentation.

    Once loaded, analyze_customer_segmentation reads from the snapshot
    instead of the store.

    Args:
        request: Snapshot file path

    Returns:
        Row counts of the loaded collections
    """
    return await _load_metrics_snapshot_impl(request, ctx)
