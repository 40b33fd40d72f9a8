"""Fragment idempotency checks and scaffolding."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from profile_toolkit.fragments.manifest import FRAGMENT_SUFFIX, discover_fragment_files
from profile_toolkit.parallel import DEFAULT_THROTTLE_LIMIT, run_parallel

if TYPE_CHECKING:
    from collections.abc import Iterable

    from profile_toolkit.models.settings import Settings

logger = logging.getLogger(__name__)

_FRAGMENT_NAME = re.compile(r"^[a-z0-9][a-z0-9_-]*$")

FRAGMENT_TEMPLATE = '''# Requires: {requires}
# Commands: {commands}
"""{name} fragment."""

{functions}
'''

FUNCTION_TEMPLATE = '''@profile.command("{command}")
def {identifier}(*args):
    """Run {command}."""
    raise NotImplementedError("{command} is not implemented yet")
'''


@dataclass(frozen=True)
class IdempotencyResult:
    """Outcome of loading a fragment twice."""

    fragment_name: str
    first_load: str
    second_load: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when both loads succeeded."""
        return self.error is None


def _check_fragment(path: Path, settings: Settings) -> IdempotencyResult:
    from profile_toolkit.runtime import ProfileRuntime  # noqa: PLC0415

    runtime = ProfileRuntime(settings.model_copy(update={"profile_dir": str(path.parent)}))
    first = runtime.loader.load(path.stem)
    if not first.ok:
        return IdempotencyResult(
            fragment_name=path.stem,
            first_load=str(first.state),
            second_load="skipped",
            error=f"First load failed: {first.message}",
        )
    second = runtime.loader.load(path.stem, force=True)
    error = None if second.ok else f"Reload failed: {second.message}"
    return IdempotencyResult(
        fragment_name=path.stem,
        first_load=str(first.state),
        second_load=str(second.state),
        error=error,
    )


def check_idempotency(
    profile_dir: str | Path,
    settings: Settings,
    *,
    throttle_limit: int = DEFAULT_THROTTLE_LIMIT,
) -> list[IdempotencyResult]:
    """Load then force-reload every fragment, each in an isolated runtime.

    Returns:
        One result per fragment, sorted by fragment name.
    """
    files = discover_fragment_files(profile_dir)
    results: list[IdempotencyResult] = []
    for batch_result in run_parallel(
        lambda path: _check_fragment(path, settings), files, throttle_limit=throttle_limit
    ):
        if batch_result.ok:
            results.append(batch_result.value)
        else:
            results.append(
                IdempotencyResult(
                    fragment_name=batch_result.item.stem,
                    first_load="error",
                    second_load="skipped",
                    error=batch_result.error,
                )
            )
    return sorted(results, key=lambda result: result.fragment_name)


def create_fragment(
    profile_dir: str | Path,
    name: str,
    *,
    requires: Iterable[str] = (),
    commands: Iterable[str] = (),
) -> Path:
    """Write a new fragment from the template.

    Raises:
        ValueError: If ``name`` is not a valid fragment name.
        FileExistsError: If the fragment already exists.
    """
    if not _FRAGMENT_NAME.match(name):
        message = f"Invalid fragment name '{name}' (use lowercase letters, digits, '-' or '_')"
        raise ValueError(message)
    path = Path(profile_dir) / f"{name}{FRAGMENT_SUFFIX}"
    if path.exists():
        message = f"Fragment already exists: {path}"
        raise FileExistsError(message)

    command_list = list(commands)
    functions = "\n\n".join(
        FUNCTION_TEMPLATE.format(command=command, identifier=_identifier(command))
        for command in command_list
    )
    content = FRAGMENT_TEMPLATE.format(
        name=name,
        requires=", ".join(requires),
        commands=", ".join(command_list),
        functions=functions,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content.rstrip() + "\n", encoding="utf-8")
    logger.info("Created fragment %s", path)
    return path


def _identifier(command: str) -> str:
    identifier = re.sub(r"\W", "_", command)
    if not identifier or identifier[0].isdigit():
        identifier = f"cmd_{identifier}"
    return identifier
