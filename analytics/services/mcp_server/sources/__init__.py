"""Data-fetch collaborators for customer segmentation."""

from analytics.services.mcp_server.sources.base import (
    AnalysisWindow,
    MetricsSource,
    ensure_rows,
)
from analytics.services.mcp_server.sources.memory import InMemoryMetricsSource
from analytics.services.mcp_server.sources.postgrest import PostgrestMetricsSource
from analytics.services.mcp_server.state import get_shared_state

METRICS_SOURCE_KEY = "metrics_source"


def resolve_metrics_source() -> MetricsSource:
    """Return the snapshot source loaded into shared state, else the store.

    Raises:
        DataFetchError: If no snapshot is loaded and the store is not configured
    """
    source = get_shared_state().get(METRICS_SOURCE_KEY)
    if source is not None:
        return source
    return PostgrestMetricsSource.from_env()


__all__ = [
    "AnalysisWindow",
    "InMemoryMetricsSource",
    "METRICS_SOURCE_KEY",
    "MetricsSource",
    "PostgrestMetricsSource",
    "ensure_rows",
    "resolve_metrics_source",
]
