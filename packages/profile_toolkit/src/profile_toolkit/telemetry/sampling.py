"""Tail-based retention sampling for wide events.

Errors and slow operations are always kept; everything else is kept with
probability ``sample_rate``.
"""

from __future__ import annotations

import random
import threading
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

SEVERITY_NUMBERS: dict[str, int] = {
    "DEBUG": 5,
    "INFO": 9,
    "WARN": 13,
    "ERROR": 17,
    "FATAL": 21,
}

_SEVERITY_ALIASES = {"WARNING": "WARN", "CRITICAL": "FATAL", "VERBOSE": "DEBUG"}

ERROR_SEVERITIES = frozenset({"ERROR", "FATAL"})


class RetentionReason(StrEnum):
    """Why an event was kept (or not)."""

    ERROR = "error"
    SLOW = "slow"
    EXPLICIT = "explicit"
    SAMPLED = "sampled"
    DROPPED = "dropped"


def normalize_severity(level: str | None) -> str:
    """Normalize a level name to DEBUG/INFO/WARN/ERROR/FATAL (INFO if unknown)."""
    if not level:
        return "INFO"
    name = str(level).strip().upper()
    name = _SEVERITY_ALIASES.get(name, name)
    return name if name in SEVERITY_NUMBERS else "INFO"


@dataclass(frozen=True)
class RetentionDecision:
    """Outcome of a retention check."""

    keep: bool
    reason: RetentionReason


@dataclass(frozen=True)
class SamplingStats:
    """Aggregate view of retention decisions."""

    total_events: int
    kept_events: int
    dropped_events: int
    error_count: int
    errors_retained: int
    error_retention_rate: float
    slow_count: int
    sampled_count: int
    explicit_count: int
    retention_rate: float
    collected_events: int
    sample_rate: float
    slow_threshold_ms: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class TailSampler:
    """Decide event retention and count the decisions."""

    def __init__(
        self,
        *,
        sample_rate: float = 1.0,
        slow_threshold_ms: float = 100.0,
        rng: Callable[[], float] | None = None,
    ) -> None:
        self.sample_rate = min(max(sample_rate, 0.0), 1.0)
        self.slow_threshold_ms = slow_threshold_ms
        self._rng = rng or random.random
        self._lock = threading.Lock()
        self._counts: dict[RetentionReason, int] = dict.fromkeys(RetentionReason, 0)
        self._error_count = 0
        self._errors_retained = 0

    def decide(
        self,
        *,
        severity: str,
        has_error: bool = False,
        duration_ms: float | None = None,
        always_keep: bool = False,
        sample_rate: float | None = None,
    ) -> RetentionDecision:
        """Decide whether to keep an event and record the decision.

        Priority: explicit keep, error, slow, then probabilistic sampling.
        """
        is_error = has_error or severity in ERROR_SEVERITIES
        if always_keep:
            decision = RetentionDecision(keep=True, reason=RetentionReason.EXPLICIT)
        elif is_error:
            decision = RetentionDecision(keep=True, reason=RetentionReason.ERROR)
        elif duration_ms is not None and duration_ms >= self.slow_threshold_ms:
            decision = RetentionDecision(keep=True, reason=RetentionReason.SLOW)
        else:
            rate = self.sample_rate if sample_rate is None else min(max(sample_rate, 0.0), 1.0)
            keep = self._rng() < rate
            reason = RetentionReason.SAMPLED if keep else RetentionReason.DROPPED
            decision = RetentionDecision(keep=keep, reason=reason)

        with self._lock:
            self._counts[decision.reason] += 1
            if is_error:
                self._error_count += 1
                if decision.keep:
                    self._errors_retained += 1
        return decision

    @property
    def error_count(self) -> int:
        """Number of error events seen."""
        with self._lock:
            return self._error_count

    def stats(self, collected_events: int = 0) -> SamplingStats:
        """Build aggregate statistics."""
        with self._lock:
            counts = dict(self._counts)
            error_count = self._error_count
            errors_retained = self._errors_retained
        total = sum(counts.values())
        dropped = counts[RetentionReason.DROPPED]
        kept = total - dropped
        return SamplingStats(
            total_events=total,
            kept_events=kept,
            dropped_events=dropped,
            error_count=error_count,
            errors_retained=errors_retained,
            error_retention_rate=(errors_retained / error_count) if error_count else 1.0,
            slow_count=counts[RetentionReason.SLOW],
            sampled_count=counts[RetentionReason.SAMPLED],
            explicit_count=counts[RetentionReason.EXPLICIT],
            retention_rate=(kept / total) if total else 0.0,
            collected_events=collected_events,
            sample_rate=self.sample_rate,
            slow_threshold_ms=self.slow_threshold_ms,
        )

    def reset(self) -> None:
        """Reset all counters."""
        with self._lock:
            self._counts = dict.fromkeys(RetentionReason, 0)
            self._error_count = 0
            self._errors_retained = 0
