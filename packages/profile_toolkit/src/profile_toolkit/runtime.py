"""Profile runtime: owns the shared stores and wires the core components."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from profile_toolkit.cache import TTLCache
from profile_toolkit.dispatch.dispatcher import CommandDispatcher
from profile_toolkit.dispatch.session import ShellSession
from profile_toolkit.fragments.loader import FragmentLoader
from profile_toolkit.fragments.manifest import load_or_build_manifest
from profile_toolkit.fragments.registry import CommandRegistry
from profile_toolkit.models.settings import load_settings
from profile_toolkit.telemetry.wide_events import EventStore, WideEventLogger

if TYPE_CHECKING:
    from collections.abc import Callable

    from profile_toolkit.fragments.manifest import FragmentManifest
    from profile_toolkit.models.settings import Settings

logger = logging.getLogger(__name__)


class ProfileRuntime:
    """One session's registry, loader, dispatcher and event logger.

    Every piece of mutable state is owned here and injected into the
    components, so separate runtimes never share state.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        manifest: FragmentManifest | None = None,
        namespace: dict[str, Any] | None = None,
        rng: Callable[[], float] | None = None,
    ) -> None:
        self.settings = settings
        self.profile_dir = Path(settings.profile_dir)
        self.manifest = manifest
        self.registry = CommandRegistry()
        self.cache = TTLCache(default_ttl=settings.fragment_cache_ttl)
        self.events = WideEventLogger.from_settings(settings, store=EventStore(), rng=rng)
        self.session = ShellSession(namespace)
        self.loader = FragmentLoader(
            self.profile_dir,
            self.session,
            registry=self.registry,
            events=self.events,
            cache=self.cache,
            manifest=manifest,
            cache_ttl=settings.fragment_cache_ttl,
        )
        self.dispatcher = CommandDispatcher(
            self.session,
            self.loader,
            self.registry,
            settings=settings,
            events=self.events,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> ProfileRuntime:
        """Create a runtime from settings (loaded from the environment if omitted)."""
        return cls(settings or load_settings(), **kwargs)

    def bootstrap(self, *, build_manifest: bool = True) -> int:
        """Populate the registry from the manifest and install the dispatcher.

        Args:
            build_manifest: Load or build the persisted manifest when none was given.

        Returns:
            Number of commands registered.
        """
        if self.manifest is None and build_manifest:
            self.manifest = load_or_build_manifest(self.profile_dir)
            self.loader.manifest = self.manifest
        registered = self.manifest.register_commands(self.registry) if self.manifest else 0
        installed = self.dispatcher.register()
        logger.debug(
            "Profile runtime bootstrapped: %d commands, dispatcher %s",
            registered,
            "registered" if installed else "disabled",
        )
        return registered

    def invoke(self, command_name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke a command through the session (lazy-loading on a miss)."""
        return self.session.invoke(command_name, *args, **kwargs)


# Global runtime instance (singleton pattern)
_runtime: ProfileRuntime | None = None


def get_runtime(settings: Settings | None = None) -> ProfileRuntime:
    """Return the process-wide runtime, bootstrapping it on first use."""
    global _runtime  # noqa: PLW0603

    if _runtime is None:
        runtime = ProfileRuntime.from_settings(settings)
        runtime.bootstrap()
        _runtime = runtime
    return _runtime


def reset_runtime() -> None:
    """Drop the process-wide runtime (tests and reset flows)."""
    global _runtime  # noqa: PLW0603

    if _runtime is not None:
        _runtime.dispatcher.unregister()
        _runtime = None
