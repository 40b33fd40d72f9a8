"""Fragment registry, manifest and loader."""

from profile_toolkit.fragments.api import FragmentAPI
from profile_toolkit.fragments.loader import FragmentLoader
from profile_toolkit.fragments.manifest import (
    FragmentManifest,
    FragmentManifestEntry,
    ManifestBuild,
    build_manifest,
    clear_manifest,
    load_or_build_manifest,
    manifest_path,
)
from profile_toolkit.fragments.models import (
    CommandRegistryEntry,
    CommandType,
    ErrorKind,
    FragmentDiagnostics,
    FragmentLoadState,
    LoadResult,
)
from profile_toolkit.fragments.registry import CommandRegistry

__all__ = [
    "CommandRegistry",
    "CommandRegistryEntry",
    "CommandType",
    "ErrorKind",
    "FragmentAPI",
    "FragmentDiagnostics",
    "FragmentLoadState",
    "FragmentLoader",
    "FragmentManifest",
    "FragmentManifestEntry",
    "LoadResult",
    "ManifestBuild",
    "build_manifest",
    "clear_manifest",
    "load_or_build_manifest",
    "manifest_path",
]
