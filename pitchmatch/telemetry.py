"""OpenTelemetry tracing for PitchMatch service calls.

Every method wrapped by :func:`pitchmatch.metrics.instrument` runs inside a
span named after its operation, carrying the logging context and, on
rejection, the domain error code. Spans go to the OTLP endpoint from
``settings.otlp_endpoint``, or to the console when tracing is enabled without
one. With tracing disabled spans are created and dropped. ``OTEL_SERVICE_NAME``
overrides the reported service name.
"""

from __future__ import annotations

import atexit
import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer
from opentelemetry.trace.span import Span

from pitchmatch import __version__
from pitchmatch.config import settings
from pitchmatch.logging import logger

_tracer_provider: TracerProvider | None = None
_initialized: bool = False


def initialize_telemetry() -> None:
    """Install the PitchMatch tracer provider. Repeat calls are no-ops.

    The resource carries the package version and ``settings.environment``.

    Raises:
        ValueError: If the OTLP endpoint is invalid
    """
    global _tracer_provider, _initialized

    if _initialized:
        logger.debug("Telemetry already initialized, skipping")
        return

    service_name = os.getenv("OTEL_SERVICE_NAME", "pitchmatch")

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment.value,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if settings.enable_tracing and settings.otlp_endpoint:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
            _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(
                "Initialized OTLP span exporter",
                endpoint=settings.otlp_endpoint,
                service_name=service_name,
            )
        except Exception as e:
            logger.error("Failed to initialize OTLP exporter", error=str(e))
            raise ValueError(f"Invalid OTLP endpoint: {settings.otlp_endpoint}") from e
    elif settings.enable_tracing:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.debug("Initialized console span exporter")

    trace.set_tracer_provider(_tracer_provider)
    atexit.register(shutdown_telemetry)
    _initialized = True

    logger.debug(
        "Telemetry initialized",
        service_name=service_name,
        environment=settings.environment.value,
        tracing_enabled=settings.enable_tracing,
    )


def get_tracer(name: str) -> Tracer:
    """Tracer for one service component; the provider is set up on first use."""
    if not _initialized:
        initialize_telemetry()

    return trace.get_tracer(name)


def add_span_attributes(span: Span, attributes: dict[str, Any]) -> None:
    """Set attributes on ``span``, skipping None and stringifying lists and dicts."""
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (list, dict)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception_in_span(
    span: Span,
    exception: Exception,
    set_status: bool = True,
) -> None:
    """Attach ``exception`` to ``span``; with ``set_status`` the span is marked ERROR."""
    span.record_exception(exception)
    if set_status:
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_telemetry() -> None:
    """Flush pending spans. Registered with atexit by :func:`initialize_telemetry`."""
    global _tracer_provider, _initialized

    if _tracer_provider and _initialized:
        _tracer_provider.shutdown()
        _initialized = False
        logger.info("Telemetry shut down successfully")


def sync_logging_context_to_span(span: Span) -> None:
    """Copy request_id, profile_id and operation from the logging context."""
    from pitchmatch.logging import get_request_context

    add_span_attributes(span, get_request_context())


__all__ = [
    "initialize_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "add_span_attributes",
    "record_exception_in_span",
    "sync_logging_context_to_span",
]
