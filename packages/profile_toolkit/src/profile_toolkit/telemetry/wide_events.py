"""Wide structured events with tail-based retention.

Each event is a single record carrying the full context of one operation, with
OpenTelemetry-style severity and status fields. Writing an event never raises;
only ``wide_event``/``run_with_event`` propagate, and what they propagate is the
wrapped operation's own error.
"""

from __future__ import annotations

import inspect
import logging
import os
import platform
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from profile_toolkit.telemetry.sampling import (
    SEVERITY_NUMBERS,
    RetentionReason,
    SamplingStats,
    TailSampler,
    normalize_severity,
)
from profile_toolkit.telemetry.tracing import get_current_trace_id, operation_span
from profile_toolkit.utils import utc_timestamp

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from profile_toolkit.models.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_OK = "OK"
STATUS_ERROR = "ERROR"
STATUS_UNSET = "UNSET"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class EventError:
    """Error detail attached to an event."""

    type: str
    message: str

    @classmethod
    def from_exception(cls, error: BaseException | str) -> EventError:
        """Build error detail from an exception or a message."""
        if isinstance(error, BaseException):
            return cls(type=type(error).__name__, message=str(error))
        return cls(type="Error", message=str(error))


@dataclass
class WideEvent:
    """Single structured record describing one operation."""

    event_name: str
    timestamp: str
    service_name: str
    severity_text: str
    severity_number: int
    status_code: str
    retention_reason: RetentionReason
    duration_ms: float | None = None
    context: dict[str, Any] = field(default_factory=dict)
    error: EventError | None = None
    invocation: dict[str, Any] = field(default_factory=dict)
    trace_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat, JSON-ready dictionary."""
        payload: dict[str, Any] = {
            "event_name": self.event_name,
            "timestamp": self.timestamp,
            "service.name": self.service_name,
            "severity_text": self.severity_text,
            "severity_number": self.severity_number,
            "status_code": self.status_code,
            "retention_reason": str(self.retention_reason),
            "duration_ms": self.duration_ms,
            "context": dict(self.context),
            "invocation": dict(self.invocation),
        }
        if self.error is not None:
            payload["error"] = {"type": self.error.type, "message": self.error.message}
        if self.trace_id:
            payload["trace_id"] = self.trace_id
        return payload


class EventStore:
    """Process-wide ordered list of retained events."""

    def __init__(self) -> None:
        self._events: list[WideEvent] = []
        self._lock = threading.Lock()

    def append(self, event: WideEvent) -> None:
        """Append a retained event."""
        with self._lock:
            self._events.append(event)

    def snapshot(self) -> list[WideEvent]:
        """Return a copy of the retained events in write order."""
        with self._lock:
            return list(self._events)

    def clear(self) -> int:
        """Remove every event and return how many were removed."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def _calling_function() -> str:
    frame = inspect.currentframe()
    try:
        while frame is not None:
            if frame.f_globals.get("__name__") not in (__name__, "contextlib"):
                return frame.f_code.co_name
            frame = frame.f_back
        return "<unknown>"
    finally:
        del frame


class WideEventLogger:
    """Write wide events through a tail sampler into an event store."""

    def __init__(
        self,
        *,
        service_name: str = "shell-profile",
        sample_rate: float = 1.0,
        slow_threshold_ms: float = 100.0,
        store: EventStore | None = None,
        rng: Callable[[], float] | None = None,
    ) -> None:
        self.service_name = service_name
        self.store = store if store is not None else EventStore()
        self.sampler = TailSampler(
            sample_rate=sample_rate,
            slow_threshold_ms=slow_threshold_ms,
            rng=rng,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: EventStore | None = None,
        rng: Callable[[], float] | None = None,
    ) -> WideEventLogger:
        """Create a logger configured from settings."""
        return cls(
            service_name=settings.service_name,
            sample_rate=settings.sample_rate,
            slow_threshold_ms=settings.slow_threshold_ms,
            store=store,
            rng=rng,
        )

    @property
    def error_count(self) -> int:
        """Number of error events written so far."""
        return self.sampler.error_count

    def write_event(
        self,
        event_name: str,
        level: str = "INFO",
        context: dict[str, Any] | None = None,
        *,
        duration_ms: float | None = None,
        error: BaseException | str | None = None,
        sample_rate: float | None = None,
        always_keep: bool = False,
        status_code: str | None = None,
    ) -> bool:
        """Write an event, subject to tail sampling.

        Args:
            event_name: Dot-delimited event name, e.g. ``profile.fragment.load``.
            level: DEBUG, INFO, WARN, ERROR or FATAL.
            context: Caller context merged into the record verbatim.
            duration_ms: Operation duration; slow operations are always kept.
            error: Exception (or message) attached to the event; always kept.
            sample_rate: Per-call override of the sampling probability.
            always_keep: Keep the event regardless of sampling.
            status_code: Explicit status code; defaults to ERROR for errors.

        Returns:
            True if the event was retained.
        """
        try:
            severity = normalize_severity(level)
            decision = self.sampler.decide(
                severity=severity,
                has_error=error is not None,
                duration_ms=duration_ms,
                always_keep=always_keep,
                sample_rate=sample_rate,
            )
            if not decision.keep:
                return False

            is_error = error is not None or severity in ("ERROR", "FATAL")
            event = WideEvent(
                event_name=event_name,
                timestamp=utc_timestamp(),
                service_name=self.service_name,
                severity_text=severity,
                severity_number=SEVERITY_NUMBERS[severity],
                status_code=STATUS_ERROR if is_error else (status_code or STATUS_UNSET),
                retention_reason=decision.reason,
                duration_ms=duration_ms,
                context=dict(context or {}),
                error=EventError.from_exception(error) if error is not None else None,
                invocation={
                    "function": _calling_function(),
                    "python_version": platform.python_version(),
                    "pid": os.getpid(),
                },
                trace_id=get_current_trace_id(),
            )
            self.store.append(event)
            logger.log(
                _LOG_LEVELS[severity],
                "%s status=%s retention=%s duration_ms=%s",
                event_name,
                event.status_code,
                decision.reason,
                duration_ms,
            )
        except Exception as exc:  # noqa: BLE001 - telemetry must not break callers
            logger.debug("Failed to write event %s: %s", event_name, exc)
            return False
        return True

    def write_structured_error(
        self,
        error: BaseException | str,
        operation_name: str,
        context: dict[str, Any] | None = None,
        *,
        status_code: int | str | None = None,
        retriable: bool = False,
    ) -> bool:
        """Write an ERROR event for a failed operation."""
        payload = dict(context or {})
        payload["operation_name"] = operation_name
        payload["status_code"] = status_code
        payload["retriable"] = retriable
        return self.write_event(f"{operation_name}.error", "ERROR", payload, error=error)

    def write_structured_warning(
        self,
        message: str,
        operation_name: str,
        context: dict[str, Any] | None = None,
        *,
        code: str | None = None,
    ) -> bool:
        """Write a WARN event describing a degraded operation."""
        payload = dict(context or {})
        payload["operation_name"] = operation_name
        payload["message"] = message
        payload["code"] = code
        return self.write_event(f"{operation_name}.warning", "WARN", payload)

    @contextmanager
    def wide_event(
        self,
        operation_name: str,
        context: dict[str, Any] | None = None,
        *,
        level: str = "INFO",
        sample_rate: float | None = None,
        always_keep: bool = False,
    ) -> Iterator[dict[str, Any]]:
        """Time a block and record its outcome as one event.

        Yields a mutable context dict the block may enrich. A failing block is
        recorded with ``outcome="error"`` and its exception is re-raised unchanged.
        """
        payload = dict(context or {})
        started = time.perf_counter()
        with operation_span(operation_name, payload):
            try:
                yield payload
            except Exception as exc:
                payload["outcome"] = "error"
                self.write_event(
                    operation_name,
                    "ERROR",
                    payload,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    error=exc,
                    always_keep=always_keep,
                )
                raise
            payload["outcome"] = "success"
            self.write_event(
                operation_name,
                level,
                payload,
                duration_ms=(time.perf_counter() - started) * 1000,
                sample_rate=sample_rate,
                always_keep=always_keep,
                status_code=STATUS_OK,
            )

    def run_with_event(
        self,
        operation_name: str,
        body: Callable[[], T],
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> T:
        """Run ``body`` inside ``wide_event`` and return its result."""
        with self.wide_event(operation_name, context, **kwargs):
            return body()

    def get_events(
        self,
        event_name: str | None = None,
        level: str | None = None,
    ) -> list[WideEvent]:
        """Return retained events, optionally filtered by name and severity."""
        events = self.store.snapshot()
        if event_name is not None:
            events = [event for event in events if event.event_name == event_name]
        if level is not None:
            severity = normalize_severity(level)
            events = [event for event in events if event.severity_text == severity]
        return events

    def get_sampling_stats(self) -> SamplingStats:
        """Return aggregate retention statistics."""
        return self.sampler.stats(collected_events=len(self.store))

    def clear_events(self) -> int:
        """Clear retained events; returns the number removed."""
        return self.store.clear()

    def reset_stats(self) -> None:
        """Reset sampling counters (retained events are untouched)."""
        self.sampler.reset()
