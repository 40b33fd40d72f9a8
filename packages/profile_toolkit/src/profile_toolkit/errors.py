"""Exception types raised by the profile toolkit.

Operations reachable from command resolution return sentinels instead of
raising; these types surface only from setup paths, from explicit invocation
through a session, and from the observability wrapper.
"""

from __future__ import annotations


class ProfileError(Exception):
    """Base class for profile toolkit errors."""


class CommandNotFoundError(ProfileError, LookupError):
    """Raised when a command cannot be resolved by the session."""

    def __init__(self, command_name: str) -> None:
        super().__init__(f"The term '{command_name}' is not recognized as a command")
        self.command_name = command_name


class FragmentExecutionError(ProfileError):
    """Wraps an exception raised while executing a fragment body."""

    def __init__(self, fragment_name: str, cause: BaseException) -> None:
        super().__init__(f"Fragment '{fragment_name}' failed: {cause}")
        self.fragment_name = fragment_name
        self.cause = cause


class ManifestError(ProfileError):
    """Raised when a persisted fragment manifest cannot be read."""
