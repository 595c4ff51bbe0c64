"""
Customer Segmentation MCP Server

This module configures logging and observability, registers the
segmentation tools and runs the MCP server.

Environment:
- LOG_LEVEL: logging level (default INFO)
- PROMETHEUS_METRICS_PORT: Prometheus exporter port (default 8000)
- OTLP_ENDPOINT, ENVIRONMENT, SAMPLING_RATE: tracing export settings
- SUPABASE_URL, SUPABASE_ANON_KEY, SEGMENTATION_FETCH_TIMEOUT: store access
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

import structlog

from analytics.services.mcp_server.instance import VERSION, mcp


def configure_logging(level_name: str | None = None) -> None:
    """Route stdlib and structlog output to stderr as JSON.

    stdout is reserved for the MCP JSON protocol.
    """
    level = getattr(logging, (level_name or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def app_lifespan(app):
    """Initialise tracing and the Prometheus exporter for the server's lifetime."""
    logger.info("mcp_server_starting", version=VERSION)

    from analytics.services.mcp_server.metrics import start_metrics_server
    from analytics.services.mcp_server.observability import configure_tracing

    configure_tracing(
        environment=os.getenv("ENVIRONMENT", "development"),
        otlp_endpoint=os.getenv("OTLP_ENDPOINT"),
        sampling_rate=float(os.getenv("SAMPLING_RATE", "1.0")),
    )

    metrics_port = int(os.getenv("PROMETHEUS_METRICS_PORT", "8000"))
    try:
        start_metrics_server(port=metrics_port)
    except RuntimeError as e:
        # Server already running (e.g., during hot reload)
        logger.warning("prometheus_metrics_server_already_running", error=str(e))
    except OSError as e:
        logger.error("prometheus_metrics_server_failed", error=str(e), port=metrics_port)

    yield

    logger.info("mcp_server_stopping")


mcp.lifespan = app_lifespan

# Each module registers its tools using the @mcp.tool() decorator
from analytics.services.mcp_server.tools import (  # noqa: E402, F401
    analyze_customer_segmentation,
    get_customer_segmentation_detail,
    health_check,
    load_metrics_snapshot,
)

logger.info("mcp_server_initialized", version=VERSION, tools_registered=4)


if __name__ == "__main__":
    mcp.run()
