"""
Tracing configuration for the segmentation MCP server.

Spans are created through the OpenTelemetry API throughout the service;
they are no-ops until configure_tracing installs an SDK tracer provider.
Development exports spans to the console, production to an OTLP endpoint.
"""

import os

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import (
    ParentBasedTraceIdRatio,
    Sampler,
    TraceIdRatioBased,
)

from analytics.services.mcp_server.instance import VERSION

logger = structlog.get_logger(__name__)


def configure_tracing(
    service_name: str = "mcp-customer-segmentation",
    environment: str = "development",
    otlp_endpoint: str | None = None,
    sampling_rate: float = 1.0,
) -> TracerProvider:
    """Configure OpenTelemetry tracing.

    Args:
        service_name: Name of the service for telemetry identification
        environment: Deployment environment (development, staging, production)
        otlp_endpoint: OTLP gRPC endpoint (e.g., 'localhost:4317' for Jaeger).
                      If None, uses OTLP_ENDPOINT or falls back to console export
        sampling_rate: Trace sampling rate (0.0-1.0)

    Returns:
        The installed tracer provider
    """
    otlp_endpoint = otlp_endpoint or os.getenv("OTLP_ENDPOINT")

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": VERSION,
            "deployment.environment": environment,
        }
    )
    provider = TracerProvider(resource=resource, sampler=create_sampler(sampling_rate))

    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
            )
            logger.info("otlp_tracing_configured", endpoint=otlp_endpoint)
        except ImportError as e:
            logger.warning(
                "otlp_exporter_not_available_falling_back_to_console",
                error=str(e),
                message="Install the 'otlp' extra for production OTLP export",
            )
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    else:
        logger.info("configuring_console_tracing", environment=environment)
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    logger.info(
        "tracing_configured",
        service_name=service_name,
        environment=environment,
        otlp_enabled=otlp_endpoint is not None,
        sampling_rate=sampling_rate,
    )
    return provider


def create_sampler(sampling_rate: float) -> Sampler:
    """Create a trace sampler for a sampling rate clamped to [0, 1]."""
    if sampling_rate <= 0.0:
        return TraceIdRatioBased(0.0)
    return ParentBasedTraceIdRatio(min(sampling_rate, 1.0))
