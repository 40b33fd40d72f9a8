"""Bounded parallel fan-out for independent batch work."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_LIMIT = 4

T = TypeVar("T")


@dataclass(frozen=True)
class BatchItemResult(Generic[T]):
    """Result of one work item; ``error`` is set instead of raising."""

    item: T
    value: Any = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        """True when the work item completed without raising."""
        return self.error is None


def _run_item(work: Callable[[T], Any], item: T) -> BatchItemResult[T]:
    try:
        return BatchItemResult(item=item, value=work(item))
    except Exception as exc:  # noqa: BLE001 - per-item isolation
        logger.debug("Batch item %r failed: %s", item, exc)
        return BatchItemResult(item=item, error=str(exc), error_type=type(exc).__name__)


def run_parallel(
    work: Callable[[T], Any],
    items: Iterable[T],
    *,
    throttle_limit: int = DEFAULT_THROTTLE_LIMIT,
) -> list[BatchItemResult[T]]:
    """Run ``work`` over ``items`` with at most ``throttle_limit`` in flight.

    All results are joined before returning, in completion order. A failing
    item is reported in its result and never aborts the batch.

    Args:
        work: Callable applied to each item.
        items: Inputs for the batch.
        throttle_limit: Maximum number of concurrent workers (minimum 1).

    Returns:
        One BatchItemResult per input item.
    """
    item_list = list(items)
    if not item_list:
        return []

    workers = max(1, min(throttle_limit, len(item_list)))
    if workers == 1:
        return [_run_item(work, item) for item in item_list]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_run_item, work, item) for item in item_list]
        return [future.result() for future in as_completed(futures)]
