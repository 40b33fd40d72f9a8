# Requires: env
"""Docker shortcuts."""

import subprocess

from profile_toolkit.availability import command_available


def _docker(*args):
    if not command_available("docker"):
        return "docker is not installed"
    completed = subprocess.run(["docker", *args], capture_output=True, text=True, check=False)
    return (completed.stdout or completed.stderr).rstrip()


@profile.command("docker-ps")
def docker_ps(*args):
    """List running containers."""
    return _docker("ps", *args)


@profile.command("docker-logs")
def docker_logs(container, *args):
    """Show logs for a container."""
    return _docker("logs", container, *args)


profile.alias("dps", "docker-ps")
