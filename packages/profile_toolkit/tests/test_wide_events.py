from __future__ import annotations

import logging
import random

import pytest
from opentelemetry.sdk.trace import TracerProvider

from profile_toolkit.models import Settings
from profile_toolkit.telemetry import (
    RetentionReason,
    TraceContextFilter,
    WideEventLogger,
    configure_logging,
)
from profile_toolkit.telemetry.logging_utils import level_for_debug


def test_error_event_is_always_retained() -> None:
    events = WideEventLogger(sample_rate=0.0)

    kept = events.write_event("op.test", "ERROR", {}, error=RuntimeError("failed"))

    assert kept is True
    record = events.get_events("op.test")[0].to_dict()
    assert record["severity_number"] == 17
    assert record["status_code"] == "ERROR"
    assert record["retention_reason"] == "error"
    assert record["error"] == {"type": "RuntimeError", "message": "failed"}
    assert record["service.name"] == "shell-profile"


def test_attached_error_keeps_info_event() -> None:
    events = WideEventLogger(sample_rate=0.0)
    assert events.write_event("op.info", "INFO", error="lost connection") is True
    event = events.get_events("op.info")[0]
    assert event.retention_reason is RetentionReason.ERROR
    assert event.status_code == "ERROR"
    assert events.get_sampling_stats().error_retention_rate == 1.0


def test_clear_events_returns_removed_count() -> None:
    events = WideEventLogger(sample_rate=1.0)
    for index in range(5):
        events.write_event("op.count", "INFO", {"index": index})

    assert events.clear_events() == 5
    assert events.clear_events() == 0
    assert events.get_sampling_stats().total_events == 5


def test_slow_event_kept_even_with_zero_sample_rate() -> None:
    events = WideEventLogger(sample_rate=0.0, slow_threshold_ms=100)

    assert events.write_event("op.slow", "INFO", duration_ms=100) is True
    assert events.write_event("op.fast", "INFO", duration_ms=99.9) is False
    assert events.get_events("op.slow")[0].retention_reason is RetentionReason.SLOW
    assert events.get_events("op.fast") == []


def test_explicit_keep_wins() -> None:
    events = WideEventLogger(sample_rate=0.0)
    assert events.write_event("op.keep", "DEBUG", always_keep=True) is True
    event = events.get_events("op.keep")[0]
    assert event.retention_reason is RetentionReason.EXPLICIT
    assert event.severity_number == 5


def test_sampling_distribution_converges() -> None:
    rng = random.Random(1234).random
    events = WideEventLogger(sample_rate=0.5, rng=rng)

    kept = sum(events.write_event("op.sampled", "INFO", duration_ms=1.0) for _ in range(2000))

    assert 0.4 <= kept / 2000 <= 0.6
    stats = events.get_sampling_stats()
    assert stats.total_events == 2000
    assert stats.kept_events == kept
    assert stats.sampled_count == kept
    assert stats.dropped_events == 2000 - kept
    assert stats.collected_events == kept


def test_per_call_sample_rate_override() -> None:
    events = WideEventLogger(sample_rate=1.0)
    assert events.write_event("op.never", "INFO", sample_rate=0.0) is False
    assert events.write_event("op.always", "INFO", sample_rate=1.0) is True


def test_stats_without_errors_and_reset() -> None:
    events = WideEventLogger(sample_rate=1.0)
    stats = events.get_sampling_stats()
    assert stats.error_count == 0
    assert stats.error_retention_rate == 1.0
    assert stats.retention_rate == 0.0

    events.write_event("op.a", "WARNING")
    assert events.get_events(level="WARN")[0].severity_number == 13
    events.reset_stats()
    assert events.get_sampling_stats().total_events == 0
    assert len(events.get_events()) == 1


def test_structured_error_and_warning_helpers() -> None:
    events = WideEventLogger(sample_rate=0.0)
    events.write_structured_error(
        ValueError("bad input"), "profile.sync", {"target": "home"}, status_code=400
    )
    events.write_structured_warning("slow disk", "profile.sync", code="degraded")

    error = events.get_events("profile.sync.error")[0]
    assert error.context["operation_name"] == "profile.sync"
    assert error.context["status_code"] == 400
    assert error.context["retriable"] is False
    assert error.context["target"] == "home"
    assert events.error_count == 1
    # warnings are sampled like any other non-error event
    assert events.get_events("profile.sync.warning") == []


def test_run_with_event_returns_result_and_records_success() -> None:
    events = WideEventLogger(sample_rate=1.0)

    assert events.run_with_event("op.run", lambda: 42, {"step": "compute"}) == 42

    event = events.get_events("op.run")[0]
    assert event.context == {"step": "compute", "outcome": "success"}
    assert event.status_code == "OK"
    assert event.duration_ms is not None


def test_run_with_event_reraises_and_records_error() -> None:
    events = WideEventLogger(sample_rate=0.0)

    def body() -> None:
        message = "disk full"
        raise OSError(message)

    with pytest.raises(OSError, match="disk full"):
        events.run_with_event("op.fail", body)

    event = events.get_events("op.fail")[0]
    assert event.context["outcome"] == "error"
    assert event.error.type == "OSError"
    assert event.retention_reason is RetentionReason.ERROR


def test_wide_event_context_is_enriched_by_block() -> None:
    events = WideEventLogger(sample_rate=1.0)
    with events.wide_event("op.enrich", {"user": "dev"}) as context:
        context["items"] = 3

    assert events.get_events("op.enrich")[0].context["items"] == 3


def test_events_carry_current_trace_id() -> None:
    tracer = TracerProvider().get_tracer("tests")
    events = WideEventLogger(sample_rate=1.0)

    with tracer.start_as_current_span("outer") as span:
        events.write_event("op.traced", "INFO")
        expected = format(span.get_span_context().trace_id, "032x")

    assert events.get_events("op.traced")[0].trace_id == expected
    events.write_event("op.untraced", "INFO")
    assert events.get_events("op.untraced")[0].trace_id is None


def test_trace_filter_and_logging_levels() -> None:
    record = logging.LogRecord("profile_toolkit", logging.INFO, __file__, 1, "msg", None, None)
    assert TraceContextFilter().filter(record) is True
    assert record.trace_id == "-"

    assert level_for_debug(0) == logging.WARNING
    assert level_for_debug(1) == logging.INFO
    assert level_for_debug(5) == logging.DEBUG
    package_logger = configure_logging(Settings(debug_level=2))
    assert package_logger.level == logging.DEBUG
