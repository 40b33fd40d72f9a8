from profile_toolkit.availability import clear_availability_cache, command_available
from profile_toolkit.cache import CacheEntry, TTLCache
from profile_toolkit.dispatch import CommandDispatcher, LookupEventArgs, ShellSession
from profile_toolkit.errors import (
    CommandNotFoundError,
    FragmentExecutionError,
    ManifestError,
    ProfileError,
)
from profile_toolkit.fragments import (
    CommandRegistry,
    CommandType,
    FragmentAPI,
    FragmentLoader,
    FragmentLoadState,
    FragmentManifest,
    LoadResult,
    build_manifest,
)
from profile_toolkit.fragments.checks import (
    IdempotencyResult,
    check_idempotency,
    create_fragment,
)
from profile_toolkit.models import Settings, load_settings
from profile_toolkit.parallel import BatchItemResult, run_parallel
from profile_toolkit.runtime import ProfileRuntime, get_runtime, reset_runtime
from profile_toolkit.telemetry import WideEvent, WideEventLogger, configure_logging
from profile_toolkit.utils import utc_timestamp

__all__ = [
    "BatchItemResult",
    "CacheEntry",
    "CommandDispatcher",
    "CommandNotFoundError",
    "CommandRegistry",
    "CommandType",
    "FragmentAPI",
    "FragmentExecutionError",
    "FragmentLoadState",
    "FragmentLoader",
    "FragmentManifest",
    "IdempotencyResult",
    "LoadResult",
    "LookupEventArgs",
    "ManifestError",
    "ProfileError",
    "ProfileRuntime",
    "Settings",
    "ShellSession",
    "TTLCache",
    "WideEvent",
    "WideEventLogger",
    "build_manifest",
    "check_idempotency",
    "clear_availability_cache",
    "command_available",
    "configure_logging",
    "create_fragment",
    "get_runtime",
    "load_settings",
    "reset_runtime",
    "run_parallel",
    "utc_timestamp",
]
