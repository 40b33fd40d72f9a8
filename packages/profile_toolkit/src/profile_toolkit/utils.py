"""Shared utilities for the profile toolkit."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


def utc_timestamp() -> str:
    """Return current UTC timestamp in ISO format.

    Returns:
        ISO-formatted timestamp string.
    """
    return datetime.now(UTC).isoformat()


def dedupe(values: Iterable[str]) -> list[str]:
    """Return unique values in original order."""
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        unique.append(value)
    return unique


def parse_name_list(value: str | None) -> list[str]:
    """Parse a comma or whitespace separated list of names."""
    if not value:
        return []
    return dedupe(item for item in value.replace(",", " ").split() if item)
