from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from profile_toolkit.availability import clear_availability_cache
from profile_toolkit.runtime import reset_runtime

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

PROFILE_ENV = (
    "PS_PROFILE_AUTO_LOAD_TIMEOUT",
    "PS_PROFILE_SLOW_THRESHOLD_MS",
    "PS_PROFILE_SAMPLE_RATE",
    "PS_PROFILE_DEBUG",
    "PS_PROFILE_DIR",
    "PS_PROFILE_SERVICE_NAME",
    "PS_PROFILE_FRAGMENT_CACHE_TTL",
)


@pytest.fixture(autouse=True)
def _set_required_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in PROFILE_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PS_PROFILE_AUTO_LOAD_FRAGMENTS", "1")
    clear_availability_cache()
    reset_runtime()
    yield
    package_logger = logging.getLogger("profile_toolkit")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def profile_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "profile.d"
    directory.mkdir()
    return directory


@pytest.fixture
def write_fragment(profile_dir: Path) -> Callable[[str, str], Path]:
    def _write(name: str, content: str) -> Path:
        path = profile_dir / f"{name}.py"
        path.write_text(content, encoding="utf-8")
        return path

    return _write
