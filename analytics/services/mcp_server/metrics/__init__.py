"""Metrics package for MCP Server

Prometheus export of segmentation run outcomes and stage durations.
"""

from analytics.services.mcp_server.metrics.prometheus_exporter import (
    decrement_active_segmentations,
    get_metrics_text,
    increment_active_segmentations,
    record_segmentation_run,
    record_stage_duration,
    start_metrics_server,
)

__all__ = [
    "start_metrics_server",
    "get_metrics_text",
    "record_segmentation_run",
    "record_stage_duration",
    "increment_active_segmentations",
    "decrement_active_segmentations",
]
