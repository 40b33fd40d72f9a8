"""Logging helpers for trace correlation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from profile_toolkit.telemetry.tracing import get_current_trace_id

if TYPE_CHECKING:
    from collections.abc import Iterable

    from profile_toolkit.models.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [trace=%(trace_id)s] %(message)s"


class TraceContextFilter(logging.Filter):
    """Attach trace identifiers to log records when available."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject trace_id into the log record."""
        record.trace_id = get_current_trace_id() or "-"
        return True


def install_trace_log_filter(loggers: Iterable[logging.Logger] | None = None) -> None:
    """Install trace context filters for structured logging.

    Args:
        loggers: Optional iterable of loggers to attach the filter to. Defaults to root logger.
    """
    targets = list(loggers) if loggers is not None else [logging.getLogger()]
    for logger in targets:
        if any(isinstance(flt, TraceContextFilter) for flt in logger.filters):
            continue
        logger.addFilter(TraceContextFilter())


def level_for_debug(debug_level: int) -> int:
    """Map the PS_PROFILE_DEBUG verbosity to a logging level."""
    if debug_level >= 2:
        return logging.DEBUG
    if debug_level == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure package logging from settings.

    Returns:
        The package logger.
    """
    package_logger = logging.getLogger("profile_toolkit")
    package_logger.setLevel(level_for_debug(settings.debug_level))
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(TraceContextFilter())
        package_logger.addHandler(handler)
    install_trace_log_filter([package_logger])
    return package_logger
