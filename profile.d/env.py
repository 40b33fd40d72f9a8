# Commands: show-path
"""Environment helpers shared by other fragments."""

import os


def show_path(*args):
    """Print PATH entries one per line."""
    return "\n".join(os.environ.get("PATH", "").split(os.pathsep))


profile.define("show-path", show_path)
