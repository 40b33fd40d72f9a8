"""Interactive session with a command-not-found resolver chain."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from profile_toolkit.dispatch.models import LookupEventArgs, ResolverError
from profile_toolkit.errors import CommandNotFoundError

logger = logging.getLogger(__name__)

Resolver = Callable[[str, LookupEventArgs], Any]

_MAX_ALIAS_DEPTH = 16


def _resolver_label(resolver: Resolver) -> str:
    return getattr(resolver, "__qualname__", None) or repr(resolver)


class ShellSession:
    """Command namespace plus an ordered chain of fallback resolvers.

    Fragments execute in ``namespace``; public functions they define are commands.
    Commands whose names are not identifiers are kept beside the namespace.
    On a lookup miss, resolvers run in order until one sets
    ``LookupEventArgs.stop_search``, after which the lookup is retried once.
    """

    def __init__(self, namespace: dict[str, Any] | None = None) -> None:
        self.namespace: dict[str, Any] = namespace if namespace is not None else {}
        self.namespace.setdefault("__name__", "__profile__")
        self._commands: dict[str, Callable[..., Any]] = {}
        self._aliases: dict[str, str] = {}
        self._resolvers: list[Resolver] = []
        self._lock = threading.RLock()
        self.resolver_errors: list[ResolverError] = []

    def define(self, name: str, func: Callable[..., Any]) -> None:
        """Define or redefine a command."""
        if not callable(func):
            message = f"Command '{name}' must be callable"
            raise TypeError(message)
        with self._lock:
            self._commands[name] = func
            if name.isidentifier():
                self.namespace[name] = func

    def alias(self, name: str, target: str) -> None:
        """Point ``name`` at another command name."""
        with self._lock:
            self._aliases[name] = target

    def undefine(self, name: str) -> bool:
        """Remove a command or alias; returns False if it did not exist."""
        with self._lock:
            removed = self._commands.pop(name, None) is not None
            removed = self._aliases.pop(name, None) is not None or removed
            if callable(self.namespace.get(name)):
                del self.namespace[name]
                removed = True
            return removed

    def _is_namespace_command(self, name: str, value: Any) -> bool:
        # only callables defined by fragment code count; imports and helpers do not
        if name.startswith("_") or not callable(value):
            return False
        return getattr(value, "__module__", None) == self.namespace.get("__name__")

    def lookup(self, name: str) -> Callable[..., Any] | None:
        """Find a command without consulting the resolver chain."""
        with self._lock:
            current = name
            for _ in range(_MAX_ALIAS_DEPTH):
                command = self._commands.get(current)
                if command is not None:
                    return command
                value = self.namespace.get(current)
                if self._is_namespace_command(current, value):
                    return value
                target = self._aliases.get(current)
                if target is None:
                    return None
                current = target
        logger.debug("Alias chain for '%s' is too deep", name)
        return None

    @property
    def resolvers(self) -> tuple[Resolver, ...]:
        """Return the resolver chain in invocation order."""
        with self._lock:
            return tuple(self._resolvers)

    def add_resolver(self, resolver: Resolver, *, prepend: bool = False) -> None:
        """Install a fallback resolver, keeping any existing ones in the chain."""
        with self._lock:
            if prepend:
                self._resolvers.insert(0, resolver)
            else:
                self._resolvers.append(resolver)

    def remove_resolver(self, resolver: Resolver) -> bool:
        """Remove a resolver; returns False if it was not installed."""
        with self._lock:
            for index, installed in enumerate(self._resolvers):
                if installed is resolver or installed == resolver:
                    del self._resolvers[index]
                    return True
            return False

    def resolve(self, name: str) -> Callable[..., Any] | None:
        """Resolve a command, falling back to the resolver chain on a miss."""
        if not name:
            return None
        command = self.lookup(name)
        if command is not None:
            return command

        event_args = LookupEventArgs(command_name=name)
        for resolver in self.resolvers:
            try:
                resolver(name, event_args)
            except (Exception, SystemExit) as exc:  # noqa: BLE001 - resolver isolation
                logger.debug("Resolver %s failed for '%s': %s", resolver, name, exc)
                self.resolver_errors.append(
                    ResolverError(
                        resolver=_resolver_label(resolver),
                        command_name=name,
                        message=str(exc),
                    )
                )
                continue
            if event_args.stop_search:
                break

        if event_args.command is not None:
            return event_args.command
        if event_args.stop_search:
            return self.lookup(name)
        return None

    def invoke(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Resolve and call a command.

        Raises:
            CommandNotFoundError: If nothing resolves ``name``.
        """
        command = self.resolve(name)
        if command is None:
            raise CommandNotFoundError(name)
        return command(*args, **kwargs)

    def commands(self) -> list[str]:
        """List defined command and alias names (sorted)."""
        with self._lock:
            names = set(self._commands) | set(self._aliases)
            names.update(
                key
                for key, value in self.namespace.items()
                if self._is_namespace_command(key, value)
            )
        return sorted(names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None
