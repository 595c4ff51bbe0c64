"""Orchestration layer for customer segmentation.

Async coordination of data fetching, analysis and envelope assembly.
"""

from analytics.services.mcp_server.orchestration.segmentation_pipeline import (
    run_customer_segmentation,
)

__all__ = ["run_customer_segmentation"]
