"""Command registry mapping command names to owning fragments."""

from __future__ import annotations

import logging
import threading

from profile_toolkit.fragments.models import CommandRegistryEntry, CommandType
from profile_toolkit.utils import utc_timestamp

logger = logging.getLogger(__name__)


def _normalize_name(name: str | None) -> str:
    if not isinstance(name, str):
        return ""
    return name.strip()


class CommandRegistry:
    """Registry of lazily loadable commands.

    Registration is an upsert: the last fragment to declare a command owns it.
    Lookups never raise, including after the backing store has been detached.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CommandRegistryEntry] | None = {}
        self._lock = threading.RLock()

    def register(
        self,
        command_name: str,
        fragment_name: str,
        command_type: CommandType | str = CommandType.FUNCTION,
    ) -> CommandRegistryEntry | None:
        """Register or overwrite the owner of a command.

        Args:
            command_name: Command name as typed in the session.
            fragment_name: Fragment that defines the command.
            command_type: Kind of command being declared.

        Returns:
            The stored entry, or None if the input was blank or the store is detached.
        """
        name = _normalize_name(command_name)
        fragment = _normalize_name(fragment_name)
        if not name or not fragment:
            logger.debug(
                "Ignoring blank command registration: %r -> %r", command_name, fragment_name
            )
            return None
        try:
            kind = CommandType(command_type)
        except ValueError:
            kind = CommandType.FUNCTION
        entry = CommandRegistryEntry(
            command_name=name,
            fragment_name=fragment,
            command_type=kind,
            registered_at=utc_timestamp(),
        )
        with self._lock:
            if self._entries is None:
                return None
            previous = self._entries.get(name)
            if previous is not None and previous.fragment_name != fragment:
                logger.debug(
                    "Command '%s' moved from fragment '%s' to '%s'",
                    name,
                    previous.fragment_name,
                    fragment,
                )
            self._entries[name] = entry
        return entry

    def contains(self, command_name: str | None) -> bool:
        """Return True if the command is registered."""
        name = _normalize_name(command_name)
        if not name:
            return False
        with self._lock:
            if self._entries is None:
                return False
            return name in self._entries

    def get(self, command_name: str | None) -> CommandRegistryEntry | None:
        """Get the registry entry for a command."""
        name = _normalize_name(command_name)
        if not name:
            return None
        with self._lock:
            if self._entries is None:
                return None
            return self._entries.get(name)

    def fragment_for(self, command_name: str | None) -> str | None:
        """Return the owning fragment name, or None."""
        entry = self.get(command_name)
        return entry.fragment_name if entry else None

    def commands_for(self, fragment_name: str) -> list[str]:
        """List command names owned by a fragment (sorted)."""
        with self._lock:
            entries = list((self._entries or {}).values())
        return sorted(e.command_name for e in entries if e.fragment_name == fragment_name)

    def list_all(self) -> list[CommandRegistryEntry]:
        """List all entries sorted by command name."""
        with self._lock:
            entries = list((self._entries or {}).values())
        return sorted(entries, key=lambda e: e.command_name)

    def clear(self) -> None:
        """Remove every entry (tests and reset flows)."""
        with self._lock:
            if self._entries is not None:
                self._entries.clear()

    def detach(self) -> None:
        """Drop the backing store; later lookups report nothing registered."""
        with self._lock:
            self._entries = None

    @property
    def available(self) -> bool:
        """True while the backing store is attached."""
        return self._entries is not None

    def __contains__(self, command_name: object) -> bool:
        return isinstance(command_name, str) and self.contains(command_name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries or {})

    def __repr__(self) -> str:
        return f"CommandRegistry({len(self)} commands)"
