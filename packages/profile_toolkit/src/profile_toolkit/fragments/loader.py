"""Load fragment files into a session on demand.

Loading is best effort: a missing or failing fragment is logged and reported
through ``LoadResult``, never raised, so one broken fragment cannot break the
interactive session.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from profile_toolkit.cache import TTLCache
from profile_toolkit.errors import FragmentExecutionError
from profile_toolkit.fragments.api import FragmentAPI, FragmentAPIProxy
from profile_toolkit.fragments.headers import API_NAME, read_dependencies
from profile_toolkit.fragments.manifest import FRAGMENT_SUFFIX
from profile_toolkit.fragments.models import ErrorKind, FragmentLoadState, LoadResult

if TYPE_CHECKING:
    from profile_toolkit.dispatch.session import ShellSession
    from profile_toolkit.fragments.manifest import FragmentManifest
    from profile_toolkit.fragments.registry import CommandRegistry
    from profile_toolkit.telemetry.wide_events import WideEventLogger

logger = logging.getLogger(__name__)

LOAD_EVENT = "profile.fragment.load"


class FragmentLoader:
    """Resolve, order and execute fragments in a session namespace."""

    def __init__(
        self,
        profile_dir: str | Path,
        session: ShellSession,
        *,
        registry: CommandRegistry | None = None,
        events: WideEventLogger | None = None,
        cache: TTLCache | None = None,
        manifest: FragmentManifest | None = None,
        cache_ttl: float = 60.0,
    ) -> None:
        self.profile_dir = Path(profile_dir)
        self.session = session
        self.registry = registry
        self.events = events
        self.manifest = manifest
        self.cache = cache if cache is not None else TTLCache(default_ttl=cache_ttl)
        self._cache_ttl = cache_ttl
        self._states: dict[str, FragmentLoadState] | None = {}
        self._states_lock = threading.Lock()
        self._fragment_locks: dict[str, threading.RLock] = {}
        self._api_proxy = FragmentAPIProxy()
        self._in_progress = threading.local()

    # -- paths and dependencies -------------------------------------------

    def get_fragment_path(self, fragment_name: str) -> Path:
        """Return the file path for a fragment, whether or not it exists."""
        return self.profile_dir / f"{fragment_name}{FRAGMENT_SUFFIX}"

    def get_fragment_dependencies(
        self,
        fragment_name: str,
        fragment_path: str | Path | None = None,
    ) -> tuple[str, ...]:
        """Return declared dependencies in declaration order.

        The manifest is authoritative when it lists the fragment; otherwise the
        ``# Requires:`` header of the file is read. Never raises.
        """
        if fragment_path is None and self.manifest is not None:
            entry = self.manifest.get(fragment_name)
            if entry is not None:
                return entry.dependencies
        path = fragment_path if fragment_path is not None else self.get_fragment_path(fragment_name)
        if not str(path).strip():
            return ()
        deps = read_dependencies(path)
        return tuple(dep for dep in deps if dep != fragment_name)

    def _fragment_exists(self, path: Path) -> bool:
        key = f"fragment-exists:{path}"
        cached = self.cache.get(key)
        if cached is not None:
            return bool(cached)
        exists = path.is_file()
        self.cache.set(key, exists, self._cache_ttl)
        return exists

    # -- state ----------------------------------------------------------------

    def _lock_for(self, fragment_name: str) -> threading.RLock:
        with self._states_lock:
            lock = self._fragment_locks.get(fragment_name)
            if lock is None:
                lock = threading.RLock()
                self._fragment_locks[fragment_name] = lock
            return lock

    def _set_state(self, fragment_name: str, state: FragmentLoadState) -> None:
        with self._states_lock:
            if self._states is not None:
                self._states[fragment_name] = state

    def _loading_stack(self) -> list[str]:
        stack = getattr(self._in_progress, "names", None)
        if stack is None:
            stack = []
            self._in_progress.names = stack
        return stack

    def state_of(self, fragment_name: str) -> FragmentLoadState:
        """Return the tracked load state of a fragment."""
        with self._states_lock:
            if self._states is None:
                return FragmentLoadState.NOT_LOADED
            return self._states.get(fragment_name, FragmentLoadState.NOT_LOADED)

    def is_loaded(self, fragment_name: str) -> bool:
        """Return True if the fragment has been loaded.

        Falls back to checking the fragment's commands in the session when the
        state store is unavailable.
        """
        with self._states_lock:
            states = self._states
            if states is not None:
                return states.get(fragment_name) is FragmentLoadState.LOADED
        return self._commands_defined(fragment_name)

    def _commands_defined(self, fragment_name: str) -> bool:
        commands: list[str] = []
        if self.manifest is not None:
            entry = self.manifest.get(fragment_name)
            if entry is not None:
                commands = [*entry.commands, *entry.aliases]
        if not commands and self.registry is not None:
            commands = self.registry.commands_for(fragment_name)
        return bool(commands) and all(self.session.lookup(name) for name in commands)

    def loaded_fragments(self) -> list[str]:
        """List fragments in the LOADED state."""
        with self._states_lock:
            states = dict(self._states or {})
        return sorted(name for name, state in states.items() if state is FragmentLoadState.LOADED)

    def detach_state_store(self) -> None:
        """Drop the load-state store; ``is_loaded`` then inspects the session."""
        with self._states_lock:
            self._states = None

    def reset(self) -> None:
        """Forget load states and cached probes."""
        with self._states_lock:
            self._states = {}
        self.cache.clear()

    # -- loading --------------------------------------------------------------

    def load(
        self,
        fragment_name: str,
        *,
        load_dependencies: bool = True,
        force: bool = False,
    ) -> LoadResult:
        """Load a fragment (and its dependencies) into the session.

        Args:
            fragment_name: Fragment to load.
            load_dependencies: Load ``# Requires:`` fragments first, in order.
            force: Execute the fragment again even if it is already loaded.

        Returns:
            LoadResult describing the outcome; never raises.
        """
        name = (fragment_name or "").strip()
        if not name:
            return LoadResult(
                fragment_name="",
                state=FragmentLoadState.NOT_LOADED,
                error_kind=ErrorKind.NOT_FOUND,
                message="Fragment name is empty",
            )

        with self._lock_for(name):
            state = self.state_of(name)
            loading = self._loading_stack()
            if name in loading:
                message = f"Dependency cycle detected at fragment '{name}'"
                logger.warning(message)
                return LoadResult(
                    fragment_name=name,
                    state=state,
                    error_kind=ErrorKind.CYCLE,
                    message=message,
                )
            if not force and self.is_loaded(name):
                return LoadResult(fragment_name=name, state=FragmentLoadState.LOADED)

            self._set_state(name, FragmentLoadState.LOADING)
            loading.append(name)
            try:
                return self._load_locked(name, state, load_dependencies=load_dependencies)
            finally:
                loading.pop()
                if self.state_of(name) is FragmentLoadState.LOADING:
                    self._set_state(name, FragmentLoadState.FAILED)

    def _load_locked(
        self,
        name: str,
        previous: FragmentLoadState,
        *,
        load_dependencies: bool,
    ) -> LoadResult:
        if load_dependencies:
            for dependency in self.get_fragment_dependencies(name):
                result = self.load(dependency, load_dependencies=True)
                if not result.ok and result.error_kind is not ErrorKind.CYCLE:
                    logger.warning(
                        "Fragment '%s' dependency '%s' not loaded: %s",
                        name,
                        dependency,
                        result.message or result.state,
                    )

        path = self.get_fragment_path(name)
        if not self._fragment_exists(path):
            message = f"Fragment '{name}' not found at {path}"
            logger.warning(message)
            self._set_state(name, previous)
            if self.events is not None:
                self.events.write_structured_warning(
                    message, LOAD_EVENT, {"fragment": name, "path": str(path)}, code="not_found"
                )
            return LoadResult(
                fragment_name=name,
                state=self.state_of(name),
                error_kind=ErrorKind.NOT_FOUND,
                message=message,
            )

        started = time.perf_counter()
        api = FragmentAPI(name, self.session, registry=self.registry, events=self.events)
        try:
            source = path.read_text(encoding="utf-8")
            code = compile(source, str(path), "exec")
            self.session.namespace[API_NAME] = self._api_proxy
            with self._api_proxy.bind(api):
                exec(code, self.session.namespace)  # noqa: S102 - trusted profile code
        except (Exception, SystemExit) as exc:  # noqa: BLE001 - best-effort load
            duration_ms = (time.perf_counter() - started) * 1000
            self._set_state(name, FragmentLoadState.FAILED)
            logger.warning("Failed to load fragment '%s': %s", name, exc)
            if self.events is not None:
                self.events.write_structured_error(
                    FragmentExecutionError(name, exc),
                    LOAD_EVENT,
                    {
                        "fragment": name,
                        "path": str(path),
                        "duration_ms": duration_ms,
                        "error_type": type(exc).__name__,
                    },
                )
            return LoadResult(
                fragment_name=name,
                state=FragmentLoadState.FAILED,
                error_kind=ErrorKind.LOAD_FAILED,
                message=str(exc),
                executed=True,
            )

        duration_ms = (time.perf_counter() - started) * 1000
        self._set_state(name, FragmentLoadState.LOADED)
        logger.debug("Loaded fragment '%s' in %.1f ms", name, duration_ms)
        if self.events is not None:
            self.events.write_event(
                LOAD_EVENT,
                "INFO",
                {"fragment": name, "defined": list(api.defined), "outcome": "success"},
                duration_ms=duration_ms,
                status_code="OK",
            )
        return LoadResult(fragment_name=name, state=FragmentLoadState.LOADED, executed=True)

    def load_for_command(self, command_name: str) -> LoadResult:
        """Load the fragment that owns ``command_name``.

        Unregistered commands and a missing registry yield a NOT_FOUND result
        without logging or raising.
        """
        try:
            if self.registry is None or not self.registry.contains(command_name):
                return LoadResult(
                    fragment_name="",
                    state=FragmentLoadState.NOT_LOADED,
                    error_kind=ErrorKind.NOT_FOUND,
                    message=f"Command '{command_name}' is not registered",
                )
            fragment_name = self.registry.fragment_for(command_name)
            if not fragment_name:
                return LoadResult(
                    fragment_name="",
                    state=FragmentLoadState.NOT_LOADED,
                    error_kind=ErrorKind.NOT_FOUND,
                    message=f"Command '{command_name}' has no owning fragment",
                )
            return self.load(fragment_name)
        except Exception as exc:  # noqa: BLE001 - hot path never raises
            logger.debug("load_for_command('%s') failed: %s", command_name, exc)
            return LoadResult(
                fragment_name="",
                state=FragmentLoadState.FAILED,
                error_kind=ErrorKind.LOAD_FAILED,
                message=str(exc),
            )
