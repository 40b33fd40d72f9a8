"""Fragment header helpers.

A fragment may open with a comment block of ``# Key: value`` declarations::

    #!/usr/bin/env python3
    # Requires: bootstrap, env
    # Commands: docker-ps, docker-logs

The block ends at the first line that is neither blank nor a comment.
"""

from __future__ import annotations

import ast
import logging
from pathlib import Path

from profile_toolkit.fragments.models import CommandType
from profile_toolkit.utils import parse_name_list

logger = logging.getLogger(__name__)

REQUIRES_KEY = "requires"
COMMANDS_KEY = "commands"
API_NAME = "profile"


def parse_header(text: str) -> dict[str, str]:
    """Parse ``# Key: value`` declarations from the leading comment block."""
    meta: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        body = stripped.lstrip("#").strip()
        if ":" not in body:
            continue
        key, value = body.split(":", 1)
        key = key.strip().lower()
        if not key or " " in key:
            continue
        if key in meta:
            meta[key] = f"{meta[key]}, {value.strip()}"
        else:
            meta[key] = value.strip()
    return meta


def parse_requires(text: str) -> tuple[str, ...]:
    """Return declared dependency names in declaration order."""
    return tuple(parse_name_list(parse_header(text).get(REQUIRES_KEY)))


def read_dependencies(path: str | Path | None) -> tuple[str, ...]:
    """Read ``# Requires:`` from a fragment file; empty when unreadable."""
    if path is None or not str(path).strip():
        return ()
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError):
        return ()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Cannot read fragment header %s: %s", path, exc)
        return ()
    return parse_requires(text)


def _api_call_name(node: ast.expr, method: str) -> str | None:
    """Return the name argument of ``profile.<method>("name", ...)``, if any."""
    if not isinstance(node, ast.Call):
        return None
    func = node.func
    if not (
        isinstance(func, ast.Attribute)
        and func.attr == method
        and isinstance(func.value, ast.Name)
        and func.value.id == API_NAME
    ):
        return None
    if node.args:
        first = node.args[0]
        if isinstance(first, ast.Constant) and isinstance(first.value, str):
            return first.value
    for keyword in node.keywords:
        if keyword.arg == "name" and isinstance(keyword.value, ast.Constant):
            return str(keyword.value.value)
    return None


def exported_commands(source: str, filename: str = "<fragment>") -> dict[str, CommandType]:
    """Return commands a fragment defines at top level, in source order.

    Public ``def`` statements export their own name unless decorated with
    ``@profile.command("other-name")``; top-level ``profile.alias("name", ...)``
    calls export aliases.

    Raises:
        SyntaxError: If the source does not parse.
    """
    tree = ast.parse(source, filename=filename)
    commands: dict[str, CommandType] = {}
    for node in tree.body:
        if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
            renamed = [_api_call_name(dec, "command") for dec in node.decorator_list]
            explicit = [name for name in renamed if name]
            if explicit:
                commands.update(dict.fromkeys(explicit, CommandType.FUNCTION))
            elif not node.name.startswith("_"):
                commands[node.name] = CommandType.FUNCTION
        elif isinstance(node, ast.Expr):
            alias = _api_call_name(node.value, "alias")
            if alias:
                commands[alias] = CommandType.ALIAS
    return commands
