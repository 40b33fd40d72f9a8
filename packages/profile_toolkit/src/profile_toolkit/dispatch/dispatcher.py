"""Command dispatcher: load the owning fragment when a command lookup misses.

The dispatcher runs inside the session's command resolution, so every public
entry point returns a boolean instead of raising.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING

from profile_toolkit.fragments.models import ErrorKind, FragmentLoadState, LoadResult
from profile_toolkit.models.settings import (
    AUTO_LOAD_ENV,
    DEFAULT_AUTO_LOAD_TIMEOUT,
    Settings,
    env_flag,
)

if TYPE_CHECKING:
    from profile_toolkit.dispatch.models import LookupEventArgs
    from profile_toolkit.dispatch.session import ShellSession
    from profile_toolkit.fragments.loader import FragmentLoader
    from profile_toolkit.fragments.registry import CommandRegistry
    from profile_toolkit.telemetry.wide_events import WideEventLogger

logger = logging.getLogger(__name__)

DISPATCH_EVENT = "profile.dispatch"


def coerce_timeout(value: object, default: float = DEFAULT_AUTO_LOAD_TIMEOUT) -> float:
    """Return a positive timeout in seconds, or ``default`` for invalid input."""
    if isinstance(value, bool):
        return float(default)
    try:
        seconds = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float(default)
    if seconds <= 0 or seconds != seconds:
        return float(default)
    return seconds


class CommandDispatcher:
    """Fallback resolver that lazily loads fragments for registered commands."""

    def __init__(
        self,
        session: ShellSession,
        loader: FragmentLoader,
        registry: CommandRegistry | None,
        *,
        settings: Settings | None = None,
        events: WideEventLogger | None = None,
        timeout: float | str | None = None,
    ) -> None:
        self.session = session
        self.loader = loader
        self.registry = registry
        self.events = events
        self._settings = settings or Settings()
        self.timeout = coerce_timeout(
            timeout if timeout is not None else self._settings.auto_load_timeout
        )
        self._registered = False

    @property
    def enabled(self) -> bool:
        """Whether auto-loading is on; the environment variable overrides settings."""
        return env_flag(AUTO_LOAD_ENV, default=self._settings.auto_load_fragments)

    def is_registered(self) -> bool:
        """Return True while the dispatcher is installed in the session."""
        return self._registered

    def register(self, *, force: bool = False) -> bool:
        """Install the dispatcher in the session's resolver chain.

        Earlier resolvers stay in place and run first. Registering twice is a
        no-op unless ``force`` re-installs the dispatcher.

        Returns:
            True if the dispatcher is installed.
        """
        if not self.enabled:
            logger.debug("Fragment auto-loading disabled via %s", AUTO_LOAD_ENV)
            return False
        if self.registry is None or not self.registry.available:
            logger.debug("Command registry unavailable; dispatcher not registered")
            return False
        if self._registered and not force:
            return True
        try:
            if self._registered:
                self.session.remove_resolver(self.handle_command_not_found)
            self.session.add_resolver(self.handle_command_not_found)
        except Exception as exc:  # noqa: BLE001 - registration is best effort
            logger.warning("Failed to register command dispatcher: %s", exc)
            self._registered = False
            return False
        self._registered = True
        logger.debug("Command dispatcher registered")
        return True

    def unregister(self) -> bool:
        """Remove the dispatcher from the session; False if it was not installed."""
        if not self._registered:
            return False
        removed = self.session.remove_resolver(self.handle_command_not_found)
        self._registered = False
        return removed

    def handle_command_not_found(self, command_name: str, event_args: LookupEventArgs) -> bool:
        """Resolver entry point installed in the session."""
        return self.dispatch(command_name, event_args)

    def load_command(self, command_name: str) -> LoadResult:
        """Load the fragment that owns ``command_name``, bounded by the timeout.

        Returns:
            LoadResult; ``DISABLED`` when auto-loading is off and ``NOT_FOUND``
            for unregistered commands. Never raises.
        """
        if not self.enabled:
            return LoadResult(
                fragment_name="",
                state=FragmentLoadState.NOT_LOADED,
                error_kind=ErrorKind.DISABLED,
                message=f"Fragment auto-loading disabled via {AUTO_LOAD_ENV}",
            )
        if self.registry is None or not self.registry.contains(command_name):
            return LoadResult(
                fragment_name="",
                state=FragmentLoadState.NOT_LOADED,
                error_kind=ErrorKind.NOT_FOUND,
                message=f"Command '{command_name}' is not registered",
            )
        return self._load_with_timeout(command_name)

    def dispatch(self, command_name: str | None, event_args: LookupEventArgs) -> bool:
        """Try to satisfy a failed lookup by loading the owning fragment.

        Returns:
            True if the fragment loaded and the session should retry the lookup.
        """
        try:
            if not command_name or not command_name.strip():
                return False

            result = self.load_command(command_name)
            if not result.ok:
                logger.debug(
                    "Dispatch for '%s' did not load '%s': %s",
                    command_name,
                    result.fragment_name,
                    result.message or result.state,
                )
                return False
            event_args.stop_search = True
            return True
        except (Exception, SystemExit) as exc:  # noqa: BLE001 - must never break command lookup
            logger.debug("Dispatch for '%s' failed: %r", command_name, exc)
            return False

    def _load_with_timeout(self, command_name: str) -> LoadResult:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="profile-dispatch")
        try:
            future = executor.submit(self._load_tracked, command_name)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeoutError:
                message = f"Loading fragment for '{command_name}' exceeded {self.timeout:g}s"
                logger.warning(message)
                if self.events is not None:
                    self.events.write_structured_warning(
                        message,
                        DISPATCH_EVENT,
                        {"command": command_name, "timeout_seconds": self.timeout},
                        code="timeout",
                    )
                return LoadResult(
                    fragment_name=self.registry.fragment_for(command_name) or "",
                    state=FragmentLoadState.LOADING,
                    error_kind=ErrorKind.TIMEOUT,
                    message=message,
                )
        finally:
            executor.shutdown(wait=False)

    def _load_tracked(self, command_name: str) -> LoadResult:
        if self.events is None:
            return self.loader.load_for_command(command_name)
        context = {"command": command_name}
        with self.events.wide_event(DISPATCH_EVENT, context) as event_context:
            result = self.loader.load_for_command(command_name)
            event_context["fragment"] = result.fragment_name
            event_context["load_state"] = str(result.state)
            if result.error_kind is not None:
                event_context["error_kind"] = str(result.error_kind)
            return result
