"""Telemetry package: wide events, tail sampling and trace correlation."""

from __future__ import annotations

from profile_toolkit.telemetry.logging_utils import (
    TraceContextFilter,
    configure_logging,
    install_trace_log_filter,
)
from profile_toolkit.telemetry.sampling import (
    SEVERITY_NUMBERS,
    RetentionReason,
    SamplingStats,
    TailSampler,
)
from profile_toolkit.telemetry.tracing import get_current_trace_id, operation_span
from profile_toolkit.telemetry.wide_events import (
    EventError,
    EventStore,
    WideEvent,
    WideEventLogger,
)

__all__ = [
    "SEVERITY_NUMBERS",
    "EventError",
    "EventStore",
    "RetentionReason",
    "SamplingStats",
    "TailSampler",
    "TraceContextFilter",
    "WideEvent",
    "WideEventLogger",
    "configure_logging",
    "get_current_trace_id",
    "install_trace_log_filter",
    "operation_span",
]
