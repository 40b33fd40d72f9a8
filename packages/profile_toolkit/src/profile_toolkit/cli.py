"""Command-line entry point for profile maintenance tasks.

Usage:
    profile-toolkit cache build
    profile-toolkit cache validate
    profile-toolkit check-idempotency
    profile-toolkit new-fragment docker --requires env --commands docker-ps,dps
    profile-toolkit run --stats docker-ps -a
    profile-toolkit deps
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from profile_toolkit.errors import CommandNotFoundError, ManifestError
from profile_toolkit.fragments.checks import check_idempotency, create_fragment
from profile_toolkit.fragments.manifest import (
    FragmentManifest,
    build_manifest,
    clear_manifest,
    load_or_build_manifest,
    manifest_path,
)
from profile_toolkit.models.settings import load_settings
from profile_toolkit.runtime import ProfileRuntime
from profile_toolkit.telemetry.logging_utils import configure_logging
from profile_toolkit.utils import parse_name_list

if TYPE_CHECKING:
    from collections.abc import Sequence

    from profile_toolkit.models.settings import Settings


def _cache_build(profile_dir: Path) -> int:
    build = build_manifest(profile_dir)
    path = build.manifest.save(manifest_path(profile_dir))
    print(f"Wrote {path} ({len(build.manifest)} fragments)")
    for warning in build.diagnostics.warnings:
        print(f"  WARN {warning}")
    return 0


def _cache_clear(profile_dir: Path) -> int:
    if clear_manifest(profile_dir):
        print(f"Removed {manifest_path(profile_dir)}")
    else:
        print("No fragment cache to remove")
    return 0


def _cache_validate(profile_dir: Path) -> int:
    path = manifest_path(profile_dir)
    if not path.exists():
        print(f"No fragment cache at {path}", file=sys.stderr)
        return 1
    try:
        manifest = FragmentManifest.load(path)
    except ManifestError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    problems = manifest.validate(profile_dir)
    for problem in problems:
        print(f"  STALE {problem}")
    if problems:
        return 1
    print(f"Fragment cache is current ({len(manifest)} fragments)")
    return 0


def _check_idempotency(settings: Settings, profile_dir: Path) -> int:
    results = check_idempotency(profile_dir, settings)
    if not results:
        print(f"No fragments found in {profile_dir}")
        return 0
    failures = 0
    for result in results:
        if result.ok:
            print(f"  OK   {result.fragment_name}")
        else:
            failures += 1
            print(f"  FAIL {result.fragment_name}: {result.error}")
    print()
    print(f"{len(results) - failures}/{len(results)} fragments are idempotent")
    return 1 if failures else 0


def _new_fragment(args: argparse.Namespace, profile_dir: Path) -> int:
    path = create_fragment(
        profile_dir,
        args.name,
        requires=parse_name_list(",".join(args.requires)),
        commands=parse_name_list(",".join(args.commands)),
    )
    print(f"Created {path}")
    return 0


def _run(args: argparse.Namespace, settings: Settings) -> int:
    runtime = ProfileRuntime.from_settings(settings)
    runtime.bootstrap()
    exit_code = 0
    try:
        result = runtime.invoke(args.command, *args.args)
    except CommandNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    else:
        if result is not None:
            print(result)
    if args.stats:
        stats = runtime.events.get_sampling_stats()
        print(json.dumps(stats.to_dict(), indent=2))
    return exit_code


def _deps(profile_dir: Path) -> int:
    manifest = load_or_build_manifest(profile_dir)
    issues = manifest.dependency_issues()
    for issue in issues:
        print(f"  {issue}")
    if issues:
        return 1
    print(f"No dependency issues ({len(manifest)} fragments)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for ``profile-toolkit``."""
    parser = argparse.ArgumentParser(
        prog="profile-toolkit",
        description="Maintain and exercise a lazily loaded shell profile",
    )
    parser.add_argument(
        "--dir",
        type=Path,
        help="Fragment directory (default: PS_PROFILE_DIR or ./profile.d)",
    )
    subparsers = parser.add_subparsers(dest="action", required=True)

    cache = subparsers.add_parser("cache", help="Manage the fragment cache")
    cache.add_argument("cache_action", choices=["build", "clear", "validate"])

    subparsers.add_parser("check-idempotency", help="Load every fragment twice")

    new_fragment = subparsers.add_parser("new-fragment", help="Create a fragment from a template")
    new_fragment.add_argument("name")
    new_fragment.add_argument("--requires", nargs="*", default=[], help="Fragment dependencies")
    new_fragment.add_argument("--commands", nargs="*", default=[], help="Exported commands")

    run = subparsers.add_parser("run", help="Invoke a command through the profile session")
    run.add_argument("command")
    run.add_argument("args", nargs=argparse.REMAINDER)
    run.add_argument("--stats", action="store_true", help="Print sampling statistics")

    subparsers.add_parser("deps", help="Report unknown and cyclic dependencies")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    if args.dir is not None:
        settings = settings.model_copy(update={"profile_dir": str(args.dir)})
    configure_logging(settings)
    profile_dir = Path(settings.profile_dir)

    try:
        if args.action == "cache":
            handlers = {"build": _cache_build, "clear": _cache_clear, "validate": _cache_validate}
            return handlers[args.cache_action](profile_dir)
        if args.action == "check-idempotency":
            return _check_idempotency(settings, profile_dir)
        if args.action == "new-fragment":
            return _new_fragment(args, profile_dir)
        if args.action == "run":
            return _run(args, settings)
        return _deps(profile_dir)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
