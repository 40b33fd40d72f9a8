"""Registration API exposed to fragments as the global name ``profile``."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from profile_toolkit.errors import ProfileError
from profile_toolkit.fragments.models import CommandType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from profile_toolkit.dispatch.session import ShellSession
    from profile_toolkit.fragments.registry import CommandRegistry
    from profile_toolkit.telemetry.wide_events import WideEventLogger


class FragmentAPI:
    """API passed to a fragment while it loads."""

    def __init__(
        self,
        fragment_name: str,
        session: ShellSession,
        registry: CommandRegistry | None = None,
        events: WideEventLogger | None = None,
    ) -> None:
        self.fragment_name = fragment_name
        self.session = session
        self.events = events
        self._registry = registry
        self.defined: list[str] = []

    def declare(self, name: str, command_type: CommandType | str = CommandType.FUNCTION) -> None:
        """Record that this fragment owns ``name`` without defining it."""
        if self._registry is not None:
            self._registry.register(name, self.fragment_name, command_type)

    def define(self, name: str, func: Callable[..., Any]) -> Callable[..., Any]:
        """Define a command in the session and register its ownership."""
        self.session.define(name, func)
        self.declare(name, CommandType.FUNCTION)
        self.defined.append(name)
        return func

    def command(self, name: str | Callable[..., Any] | None = None) -> Any:
        """Decorator defining a command, optionally under another name.

        Usable as ``@profile.command``, ``@profile.command()`` or
        ``@profile.command("docker-ps")``.
        """
        if callable(name):
            func = name
            return self.define(func.__name__, func)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            return self.define(name or func.__name__, func)

        return decorator

    def alias(self, name: str, target: str) -> None:
        """Define an alias and register it as owned by this fragment."""
        self.session.alias(name, target)
        self.declare(name, CommandType.ALIAS)
        self.defined.append(name)


class FragmentAPIProxy:
    """Stable ``profile`` object that forwards to the fragment loading on this thread."""

    def __init__(self) -> None:
        self._local = threading.local()

    def _stack(self) -> list[FragmentAPI]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = []
            self._local.stack = stack
        return stack

    @property
    def current(self) -> FragmentAPI | None:
        """The API of the fragment currently loading on this thread."""
        stack = self._stack()
        return stack[-1] if stack else None

    @contextmanager
    def bind(self, api: FragmentAPI) -> Iterator[FragmentAPI]:
        """Make ``api`` current for the duration of a fragment execution."""
        stack = self._stack()
        stack.append(api)
        try:
            yield api
        finally:
            stack.pop()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        api = self.current
        if api is None:
            message = "The profile API is only available while a fragment is loading"
            raise ProfileError(message)
        return getattr(api, name)
