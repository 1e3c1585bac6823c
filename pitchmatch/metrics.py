"""Prometheus metrics collection and export.

This module provides Prometheus instrumentation for PitchMatch domain
operations, plus the :func:`instrument` decorator that every service method
goes through.

Metric Types:
    Counters (always increase):
        - domain_operations_total: Service calls by operation and outcome
        - domain_errors_total: Rejected calls by error kind and component
        - notifications_emitted_total: Notifications written, by type
        - video_views_recorded_total: Video views recorded

    Histograms (track distributions):
        - domain_operation_duration_seconds: Service call latency

Usage:
    ```python
    from pitchmatch.metrics import instrument

    class FavoriteService:
        @instrument("add_favorite", component="favorites")
        def add_favorite(self, profile_id, favorited_profile_id):
            ...
    ```

    Exposing metrics:

    ```python
    from pitchmatch.metrics import generate_metrics_output

    body = generate_metrics_output()  # Prometheus text exposition format
    ```
"""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, TypeVar

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from pitchmatch.config import settings
from pitchmatch.errors import ErrorKind, InternalError, InvalidInputError, PitchMatchError
from pitchmatch.logging import logger, set_request_context
from pitchmatch.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
    sync_logging_context_to_span,
)

F = TypeVar("F", bound=Callable[..., Any])

# Custom registry for explicit metric control
registry = CollectorRegistry()

# Service calls are database-bound: milliseconds to a few seconds
DEFAULT_LATENCY_BUCKETS = (
    0.001,  # 1ms
    0.005,  # 5ms
    0.01,   # 10ms
    0.05,   # 50ms
    0.1,    # 100ms
    0.25,   # 250ms
    0.5,    # 500ms
    1.0,    # 1s
    2.5,    # 2.5s
)


# ========== COUNTER METRICS (always increase) ==========

domain_operations_total = Counter(
    "domain_operations_total",
    "Total number of domain operations",
    labelnames=["operation", "status"],
    registry=registry,
)
"""Counter for service calls.

Labels:
    operation: Service operation (e.g., "request_connection", "recommend")
    status: "success" or "error"
"""

domain_errors_total = Counter(
    "domain_errors_total",
    "Total number of rejected domain operations",
    labelnames=["error_kind", "component"],
    registry=registry,
)
"""Counter for rejected calls.

Labels:
    error_kind: ErrorKind value (e.g., "conflict", "forbidden")
    component: Service module (e.g., "connections", "videos")
"""

notifications_emitted_total = Counter(
    "notifications_emitted_total",
    "Total number of notifications written",
    labelnames=["type"],
    registry=registry,
)
"""Counter for notifications staged alongside their triggering mutation.

Labels:
    type: NotificationType value
"""

video_views_recorded_total = Counter(
    "video_views_recorded_total",
    "Total number of video views recorded",
    registry=registry,
)


# ========== HISTOGRAM METRICS (track distributions) ==========

domain_operation_duration_seconds = Histogram(
    "domain_operation_duration_seconds",
    "Domain operation latency in seconds",
    labelnames=["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text format.

    Returns:
        Metrics output as bytes (suitable for an HTTP response body)
    """
    return generate_latest(registry)


def instrument(operation: str, component: str) -> Callable[[F], F]:
    """Wrap a service method with tracing, timing and outcome counting.

    Domain errors are logged at WARNING with their code and re-raised
    unchanged. Input models that fail validation inside the call surface
    as InvalidInputError listing the offending fields. Storage failures
    are re-raised as InternalError; any other exception is counted as
    ``internal`` and re-raised.

    Args:
        operation: Operation name used for span, metric and log labels
        component: Service module name used for the error counter

    Returns:
        Decorator preserving the wrapped function's signature
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            set_request_context(operation=operation)
            tracer = get_tracer(f"pitchmatch.{component}")
            with tracer.start_as_current_span(operation) as span:
                sync_logging_context_to_span(span)
                add_span_attributes(span, {"pitchmatch.component": component})
                start = time.perf_counter()
                try:
                    result = _invoke(func, args, kwargs)
                except PitchMatchError as exc:
                    _record_outcome(operation, "error", start, exc.kind, component)
                    record_exception_in_span(span, exc)
                    add_span_attributes(span, {"pitchmatch.error_code": exc.code})
                    logger.warning(
                        f"⚠️  {operation} rejected: {exc.code}",
                        error_kind=str(exc.kind),
                        error_code=exc.code,
                    )
                    raise
                except SQLAlchemyError as exc:
                    _record_outcome(operation, "error", start, ErrorKind.INTERNAL, component)
                    record_exception_in_span(span, exc)
                    logger.exception(f"❌ {operation} failed in storage")
                    raise InternalError(f"{operation} failed: storage error") from exc
                except Exception as exc:
                    _record_outcome(operation, "error", start, ErrorKind.INTERNAL, component)
                    record_exception_in_span(span, exc)
                    raise
                _record_outcome(operation, "success", start, None, component)
                return result

        return wrapper  # type: ignore[return-value]

    return decorator


def _invoke(func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    try:
        return func(*args, **kwargs)
    except ValidationError as exc:
        raise InvalidInputError.from_validation_error(exc) from exc


def _record_outcome(
    operation: str,
    status: str,
    start: float,
    kind: ErrorKind | None,
    component: str,
) -> None:
    if not settings.metrics_enabled:
        return
    domain_operations_total.labels(operation=operation, status=status).inc()
    domain_operation_duration_seconds.labels(operation=operation).observe(
        time.perf_counter() - start
    )
    if kind is not None:
        domain_errors_total.labels(error_kind=str(kind), component=component).inc()


def count_notification(notification_type: str) -> None:
    """Increment the notification counter for one staged notification."""
    if settings.metrics_enabled:
        notifications_emitted_total.labels(type=notification_type).inc()


def count_video_view() -> None:
    """Increment the video view counter."""
    if settings.metrics_enabled:
        video_views_recorded_total.inc()


__all__ = [
    "registry",
    "domain_operations_total",
    "domain_errors_total",
    "notifications_emitted_total",
    "video_views_recorded_total",
    "domain_operation_duration_seconds",
    "generate_metrics_output",
    "instrument",
    "count_notification",
    "count_video_view",
    "DEFAULT_LATENCY_BUCKETS",
]
