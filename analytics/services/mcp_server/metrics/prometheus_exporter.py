"""Prometheus metrics for customer segmentation runs.

Metrics exported:
- segmentation_runs_total: Counter of segmentation runs by status
- segmentation_stage_duration_seconds: Histogram of per-stage durations
- segmentation_duration_seconds: Histogram of whole-run durations
- segmentation_customers_analysed: Gauge of customers in the last run
- active_segmentations: Gauge of runs in progress

Usage:
    # Start Prometheus metrics server on port 8000
    >>> start_metrics_server(port=8000)

    # Metrics available at http://localhost:8000/metrics
"""

from threading import Lock

import structlog
from prometheus_client import Counter, Gauge, Histogram, generate_latest, start_http_server

logger = structlog.get_logger(__name__)

segmentation_runs_total = Counter(
    "segmentation_runs_total",
    "Total customer segmentation runs",
    ["status"],  # status: success, fetch_error, analysis_error
)

segmentation_stage_duration = Histogram(
    "segmentation_stage_duration_seconds",
    "Segmentation stage duration in seconds",
    ["stage"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

segmentation_duration = Histogram(
    "segmentation_duration_seconds",
    "Overall segmentation run duration in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

customers_analysed = Gauge(
    "segmentation_customers_analysed",
    "Customers analysed by the most recent successful segmentation run",
)

active_segmentations = Gauge(
    "active_segmentations", "Number of segmentation runs in progress"
)

# Global state
_metrics_server_started = False
_metrics_lock = Lock()


def start_metrics_server(port: int = 8000):
    """Start Prometheus metrics HTTP server.

    Args:
        port: Port to expose metrics on (default: 8000)

    Raises:
        RuntimeError: If metrics server is already running
    """
    global _metrics_server_started

    with _metrics_lock:
        if _metrics_server_started:
            raise RuntimeError("Metrics server is already running")

        try:
            start_http_server(port)
            _metrics_server_started = True
            logger.info("prometheus_metrics_server_started", port=port)
        except Exception as e:
            logger.error(
                "prometheus_metrics_server_failed",
                port=port,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


def get_metrics_text() -> bytes:
    """Get current Prometheus metrics in text format."""
    return generate_latest()


def record_stage_duration(stage: str, duration_seconds: float):
    """Record how long one stage (fetch, integrate, analyze) took.

    Example:
        >>> record_stage_duration('fetch', 0.42)
    """
    segmentation_stage_duration.labels(stage=stage).observe(duration_seconds)


def record_segmentation_run(status: str, duration_seconds: float, customers: int = 0):
    """Record the outcome of a segmentation run.

    Args:
        status: 'success', 'fetch_error' or 'analysis_error'
        duration_seconds: Run duration in seconds
        customers: Customers analysed (only recorded on success)
    """
    segmentation_runs_total.labels(status=status).inc()
    segmentation_duration.observe(duration_seconds)
    if status == "success":
        customers_analysed.set(customers)


def increment_active_segmentations():
    active_segmentations.inc()


def decrement_active_segmentations():
    active_segmentations.dec()
