"""Fragment registry and loader models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class CommandType(StrEnum):
    """Kind of command a fragment exports."""

    FUNCTION = "Function"
    ALIAS = "Alias"
    CMDLET = "Cmdlet"


class FragmentLoadState(StrEnum):
    """Load state tracked per fragment name."""

    NOT_LOADED = "NotLoaded"
    LOADING = "Loading"
    LOADED = "Loaded"
    FAILED = "Failed"


class ErrorKind(StrEnum):
    """Reason a load-path operation did not succeed."""

    DISABLED = "disabled"
    NOT_FOUND = "not_found"
    LOAD_FAILED = "load_failed"
    TIMEOUT = "timeout"
    CYCLE = "cycle"


@dataclass(frozen=True)
class CommandRegistryEntry:
    """Ownership record mapping a command name to its fragment."""

    command_name: str
    fragment_name: str
    command_type: CommandType
    registered_at: str


@dataclass(frozen=True)
class LoadResult:
    """Outcome of a fragment load; load paths return this instead of raising."""

    fragment_name: str
    state: FragmentLoadState
    error_kind: ErrorKind | None = None
    message: str = ""
    executed: bool = False

    @property
    def ok(self) -> bool:
        """True when the fragment is loaded."""
        return self.state is FragmentLoadState.LOADED


@dataclass
class FragmentDiagnostics:
    """Warnings collected while discovering fragments."""

    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        """Record a discovery warning."""
        self.warnings.append(message)
