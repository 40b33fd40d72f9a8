"""Command lookup models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class LookupEventArgs:
    """Mutable state for one command-not-found resolution.

    A resolver that satisfies the lookup sets ``stop_search`` so the session
    stops walking the chain and retries the lookup.
    """

    command_name: str
    stop_search: bool = False
    command: Callable[..., Any] | None = None


@dataclass(frozen=True)
class ResolverError:
    """Captured exception raised by a fallback resolver."""

    resolver: str
    command_name: str
    message: str
