"""MCP Tools for customer segmentation.

This module exports all MCP tools for snapshot loading, segmentation and
health monitoring.
"""

from .health_check import health_check
from .segmentation import (
    analyze_customer_segmentation,
    get_customer_segmentation_detail,
)
from .snapshot_loader import load_metrics_snapshot

__all__ = [
    "analyze_customer_segmentation",
    "get_customer_segmentation_detail",
    "health_check",
    "load_metrics_snapshot",
]
