from __future__ import annotations

import json

from profile_toolkit.cli import main
from profile_toolkit.fragments import manifest_path


def _cli(profile_dir, *args: str) -> int:
    return main(["--dir", str(profile_dir), *args])


def test_cache_build_validate_and_clear(profile_dir, write_fragment, capsys) -> None:
    write_fragment("env", "def setenv():\n    return None\n")

    assert _cli(profile_dir, "cache", "build") == 0
    assert manifest_path(profile_dir).exists()
    assert _cli(profile_dir, "cache", "validate") == 0

    write_fragment("git", "def gst():\n    return None\n")
    assert _cli(profile_dir, "cache", "validate") == 1
    assert "not in manifest: git" in capsys.readouterr().out

    assert _cli(profile_dir, "cache", "clear") == 0
    assert not manifest_path(profile_dir).exists()
    assert _cli(profile_dir, "cache", "validate") == 1


def test_new_fragment_creates_file_once(profile_dir, capsys) -> None:
    assert _cli(profile_dir, "new-fragment", "docker", "--commands", "docker-ps", "dps") == 0
    assert (profile_dir / "docker.py").exists()
    assert "Created" in capsys.readouterr().out

    assert _cli(profile_dir, "new-fragment", "docker") == 1
    assert "already exists" in capsys.readouterr().err


def test_run_invokes_lazily_loaded_command(profile_dir, write_fragment, capsys) -> None:
    write_fragment("git", "def gst(*args):\n    return 'status ' + ' '.join(args)\n")

    assert _cli(profile_dir, "run", "--stats", "gst", "short", "branch") == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "status short branch"
    stats = json.loads("\n".join(lines[1:]))
    assert stats["total_events"] >= 1


def test_run_unknown_command_fails(profile_dir, capsys) -> None:
    assert _cli(profile_dir, "run", "missing") == 1
    assert "not recognized" in capsys.readouterr().err


def test_check_idempotency_exit_code(profile_dir, write_fragment, capsys) -> None:
    write_fragment("good", "def ok():\n    return 1\n")
    assert _cli(profile_dir, "check-idempotency") == 0

    write_fragment("bad", 'raise RuntimeError("nope")\n')
    assert _cli(profile_dir, "check-idempotency") == 1
    assert "FAIL bad" in capsys.readouterr().out


def test_deps_reports_cycles(profile_dir, write_fragment, capsys) -> None:
    write_fragment("a", "# Requires: b\n")
    write_fragment("b", "# Requires: a\n")

    assert _cli(profile_dir, "deps") == 1
    assert "Dependency cycle" in capsys.readouterr().out
