"""OpenTelemetry helpers for correlating wide events with traces."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode, format_trace_id

if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import Span

logger = logging.getLogger(__name__)

TRACER_NAME = "profile_toolkit"


def get_current_trace_id() -> str | None:
    """Get the current OpenTelemetry trace ID if available."""
    try:
        span = otel_trace.get_current_span()
        if span is None:
            return None
        ctx = span.get_span_context()
        if ctx.trace_id == 0:
            return None
        return format_trace_id(ctx.trace_id)
    except Exception:  # noqa: BLE001
        return None


@contextmanager
def operation_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Span]:
    """Open a span for an operation, recording failures on it.

    Without a configured tracer provider the span is a no-op.
    """
    tracer = otel_trace.get_tracer(TRACER_NAME)
    span_attributes = {
        key: value
        for key, value in (attributes or {}).items()
        if isinstance(value, str | bool | int | float)
    }
    with tracer.start_as_current_span(
        name,
        attributes=span_attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
        else:
            span.set_status(Status(StatusCode.OK))
