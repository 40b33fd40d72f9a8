# Requires: env
# Commands: gst, glog
"""Git shortcuts."""

import subprocess

from profile_toolkit.availability import command_available


def _git(*args):
    if not command_available("git"):
        return "git is not installed"
    completed = subprocess.run(["git", *args], capture_output=True, text=True, check=False)
    return (completed.stdout or completed.stderr).rstrip()


@profile.command
def gst(*args):
    """Short git status."""
    return _git("status", "--short", *args)


@profile.command
def glog(*args):
    """One-line git log."""
    return _git("log", "--oneline", "-n", "20", *args)


profile.alias("gs", "gst")
