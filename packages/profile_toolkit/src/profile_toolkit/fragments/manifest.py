"""Fragment manifest: the persisted "fragment cache".

The manifest is a declarative table of fragment name -> file, dependencies and
exported commands. It is built once by scanning the profile directory and is
used to populate the command registry without executing any fragment.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from profile_toolkit.errors import ManifestError
from profile_toolkit.fragments.headers import (
    COMMANDS_KEY,
    REQUIRES_KEY,
    exported_commands,
    parse_header,
)
from profile_toolkit.fragments.models import CommandType, FragmentDiagnostics
from profile_toolkit.parallel import DEFAULT_THROTTLE_LIMIT, run_parallel
from profile_toolkit.utils import dedupe, parse_name_list, utc_timestamp

if TYPE_CHECKING:
    from collections.abc import Iterator

    from profile_toolkit.fragments.registry import CommandRegistry

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".fragment-manifest.json"
MANIFEST_VERSION = 1
FRAGMENT_SUFFIX = ".py"


@dataclass(frozen=True)
class FragmentManifestEntry:
    """Manifest record for one fragment file."""

    name: str
    file: str
    dependencies: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()
    mtime: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "name": self.name,
            "file": self.file,
            "dependencies": list(self.dependencies),
            "commands": list(self.commands),
            "aliases": list(self.aliases),
            "mtime": self.mtime,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FragmentManifestEntry:
        """Reconstruct from a dictionary loaded from JSON."""
        return cls(
            name=str(data["name"]),
            file=str(data.get("file", "")),
            dependencies=tuple(data.get("dependencies", [])),
            commands=tuple(data.get("commands", [])),
            aliases=tuple(data.get("aliases", [])),
            mtime=float(data.get("mtime", 0.0)),
        )


@dataclass
class FragmentManifest:
    """Mapping of fragment name to manifest entry."""

    entries: dict[str, FragmentManifestEntry] = field(default_factory=dict)
    generated_at: str = ""

    def get(self, name: str) -> FragmentManifestEntry | None:
        """Get the entry for a fragment."""
        return self.entries.get(name)

    def names(self) -> list[str]:
        """Return fragment names in sorted order."""
        return sorted(self.entries)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[FragmentManifestEntry]:
        return iter(self.entries[name] for name in self.names())

    def __len__(self) -> int:
        return len(self.entries)

    def register_commands(self, registry: CommandRegistry) -> int:
        """Declare every exported command in the registry.

        Returns:
            Number of commands registered.
        """
        count = 0
        for entry in self:
            for command in entry.commands:
                if registry.register(command, entry.name, CommandType.FUNCTION):
                    count += 1
            for alias in entry.aliases:
                if registry.register(alias, entry.name, CommandType.ALIAS):
                    count += 1
        return count

    def validate(self, profile_dir: str | Path) -> list[str]:
        """Compare the manifest with the files on disk.

        Returns:
            Human-readable problems; empty when the manifest is current.
        """
        base = Path(profile_dir)
        problems: list[str] = []
        for entry in self:
            path = Path(entry.file)
            if not path.exists():
                problems.append(f"Fragment file missing: {entry.name} ({path})")
                continue
            if path.stat().st_mtime != entry.mtime:
                problems.append(f"Fragment changed since manifest was built: {entry.name}")
        for path in discover_fragment_files(base):
            if path.stem not in self.entries:
                problems.append(f"Fragment not in manifest: {path.stem}")
        return problems

    def dependency_issues(self) -> list[str]:
        """Report unknown dependencies and dependency cycles."""
        issues: list[str] = []
        for entry in self:
            for dep in entry.dependencies:
                if dep not in self.entries:
                    issues.append(f"{entry.name} requires unknown fragment '{dep}'")

        seen_cycles: set[tuple[str, ...]] = set()
        for entry in self:
            cycle = self._find_cycle(entry.name)
            if cycle is None:
                continue
            key = tuple(sorted(set(cycle)))
            if key in seen_cycles:
                continue
            seen_cycles.add(key)
            issues.append("Dependency cycle: " + " -> ".join(cycle))
        return issues

    def _find_cycle(self, start: str) -> list[str] | None:
        stack: list[tuple[str, list[str]]] = [(start, [start])]
        visited: set[str] = set()
        while stack:
            name, path = stack.pop()
            entry = self.entries.get(name)
            if entry is None:
                continue
            for dep in entry.dependencies:
                if dep == start:
                    return [*path, dep]
                if dep not in visited:
                    visited.add(dep)
                    stack.append((dep, [*path, dep]))
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "version": MANIFEST_VERSION,
            "generated_at": self.generated_at,
            "fragments": [entry.to_dict() for entry in self],
        }

    def save(self, path: str | Path) -> Path:
        """Write the manifest as JSON."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: str | Path) -> FragmentManifest:
        """Read a manifest written by ``save``.

        Raises:
            ManifestError: If the file is missing or malformed.
        """
        source = Path(path)
        try:
            data = json.loads(source.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            message = f"Fragment manifest not found: {source}"
            raise ManifestError(message) from exc
        except json.JSONDecodeError as exc:
            message = f"Fragment manifest is not valid JSON: {source}"
            raise ManifestError(message) from exc
        if not isinstance(data, dict) or not isinstance(data.get("fragments"), list):
            message = f"Fragment manifest has no fragment list: {source}"
            raise ManifestError(message)
        try:
            entries = [FragmentManifestEntry.from_dict(item) for item in data["fragments"]]
        except (KeyError, TypeError, ValueError) as exc:
            message = f"Fragment manifest entry is malformed: {exc}"
            raise ManifestError(message) from exc
        return cls(
            entries={entry.name: entry for entry in entries},
            generated_at=str(data.get("generated_at", "")),
        )


@dataclass(frozen=True)
class ManifestBuild:
    """Manifest plus the diagnostics collected while building it."""

    manifest: FragmentManifest
    diagnostics: FragmentDiagnostics


def manifest_path(profile_dir: str | Path) -> Path:
    """Return the default manifest location for a profile directory."""
    return Path(profile_dir) / MANIFEST_FILENAME


def discover_fragment_files(profile_dir: str | Path) -> list[Path]:
    """List fragment files, skipping private (underscore) files."""
    base = Path(profile_dir)
    if not base.is_dir():
        return []
    return sorted(
        path for path in base.glob(f"*{FRAGMENT_SUFFIX}") if not path.name.startswith("_")
    )


def _scan_fragment(path: Path) -> tuple[FragmentManifestEntry, list[str]]:
    warnings: list[str] = []
    text = path.read_text(encoding="utf-8")
    meta = parse_header(text)
    dependencies = tuple(parse_name_list(meta.get(REQUIRES_KEY)))
    declared = parse_name_list(meta.get(COMMANDS_KEY))

    try:
        found = exported_commands(text, filename=str(path))
    except SyntaxError as exc:
        warnings.append(f"Cannot parse fragment {path.name}: {exc.msg} (line {exc.lineno})")
        found = {}

    functions = [name for name, kind in found.items() if kind is CommandType.FUNCTION]
    aliases = tuple(name for name, kind in found.items() if kind is CommandType.ALIAS)
    commands = tuple(dedupe(declared)) if declared else tuple(functions)

    entry = FragmentManifestEntry(
        name=path.stem,
        file=str(path.resolve()),
        dependencies=dependencies,
        commands=commands,
        aliases=aliases,
        mtime=path.stat().st_mtime,
    )
    return entry, warnings


def build_manifest(
    profile_dir: str | Path,
    *,
    throttle_limit: int = DEFAULT_THROTTLE_LIMIT,
) -> ManifestBuild:
    """Scan a profile directory and build its manifest.

    Exported commands come from a ``# Commands:`` header when present, otherwise
    from top-level public functions. Fragment files are parsed in parallel.
    """
    diagnostics = FragmentDiagnostics()
    files = discover_fragment_files(profile_dir)
    if not files:
        diagnostics.warn(f"No fragments discovered in {profile_dir}")

    entries: dict[str, FragmentManifestEntry] = {}
    for result in run_parallel(_scan_fragment, files, throttle_limit=throttle_limit):
        if not result.ok:
            diagnostics.warn(f"Cannot read fragment {result.item}: {result.error}")
            continue
        entry, warnings = result.value
        for warning in warnings:
            diagnostics.warn(warning)
        entries[entry.name] = entry

    manifest = FragmentManifest(
        entries={name: entries[name] for name in sorted(entries)},
        generated_at=utc_timestamp(),
    )
    for issue in manifest.dependency_issues():
        diagnostics.warn(issue)
    logger.debug("Built fragment manifest with %d fragments", len(manifest))
    return ManifestBuild(manifest=manifest, diagnostics=diagnostics)


def load_or_build_manifest(profile_dir: str | Path) -> FragmentManifest:
    """Load the persisted manifest if it is current, otherwise rebuild and save it."""
    path = manifest_path(profile_dir)
    if path.exists():
        try:
            manifest = FragmentManifest.load(path)
        except ManifestError as exc:
            logger.warning("Rebuilding fragment manifest: %s", exc)
        else:
            if not manifest.validate(profile_dir):
                return manifest
            logger.debug("Fragment manifest is stale, rebuilding")

    build = build_manifest(profile_dir)
    for warning in build.diagnostics.warnings:
        logger.debug("Manifest build: %s", warning)
    if Path(profile_dir).is_dir():
        try:
            build.manifest.save(path)
        except OSError as exc:
            logger.warning("Cannot persist fragment manifest %s: %s", path, exc)
    return build.manifest


def clear_manifest(profile_dir: str | Path) -> bool:
    """Delete the persisted manifest; returns False if there was none."""
    path = manifest_path(profile_dir)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
