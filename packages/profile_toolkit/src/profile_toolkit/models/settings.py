"""Pydantic models for profile settings."""

from __future__ import annotations

import logging
import math
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

AUTO_LOAD_ENV = "PS_PROFILE_AUTO_LOAD_FRAGMENTS"
AUTO_LOAD_TIMEOUT_ENV = "PS_PROFILE_AUTO_LOAD_TIMEOUT"
SLOW_THRESHOLD_ENV = "PS_PROFILE_SLOW_THRESHOLD_MS"
SAMPLE_RATE_ENV = "PS_PROFILE_SAMPLE_RATE"
DEBUG_ENV = "PS_PROFILE_DEBUG"
PROFILE_DIR_ENV = "PS_PROFILE_DIR"
SERVICE_NAME_ENV = "PS_PROFILE_SERVICE_NAME"
FRAGMENT_CACHE_TTL_ENV = "PS_PROFILE_FRAGMENT_CACHE_TTL"

DEFAULT_AUTO_LOAD_TIMEOUT = 30
DEFAULT_SLOW_THRESHOLD_MS = 100.0
DEFAULT_SAMPLE_RATE = 0.1
DEFAULT_FRAGMENT_CACHE_TTL = 60.0

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class Settings(BaseModel, frozen=True):
    """Runtime configuration loaded from environment variables."""

    auto_load_fragments: bool = True
    auto_load_timeout: int = Field(default=DEFAULT_AUTO_LOAD_TIMEOUT, gt=0)
    slow_threshold_ms: float = Field(default=DEFAULT_SLOW_THRESHOLD_MS, ge=0)
    sample_rate: float = Field(default=DEFAULT_SAMPLE_RATE, ge=0.0, le=1.0)
    debug_level: int = Field(default=0, ge=0)
    profile_dir: str = "profile.d"
    service_name: str = "shell-profile"
    fragment_cache_ttl: float = Field(default=DEFAULT_FRAGMENT_CACHE_TTL, ge=0)


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment.

    Unset or unrecognized values fall back to ``default``.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def _parse_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    if value < minimum:
        logger.debug("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


def _parse_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    if not math.isfinite(value):
        logger.debug("Ignoring non-finite %s=%r, using %s", name, raw, default)
        return default
    if value < minimum:
        logger.debug("Ignoring out-of-range %s=%r, using %s", name, raw, default)
        return default
    return value


def load_settings() -> Settings:
    """Load settings from environment variables with defaults.

    Invalid values never raise; each falls back to its documented default.
    """
    load_dotenv()

    sample_rate = min(max(_parse_float(SAMPLE_RATE_ENV, DEFAULT_SAMPLE_RATE), 0.0), 1.0)

    return Settings(
        auto_load_fragments=env_flag(AUTO_LOAD_ENV, default=True),
        auto_load_timeout=_parse_int(AUTO_LOAD_TIMEOUT_ENV, DEFAULT_AUTO_LOAD_TIMEOUT, minimum=1),
        slow_threshold_ms=_parse_float(SLOW_THRESHOLD_ENV, DEFAULT_SLOW_THRESHOLD_MS),
        sample_rate=sample_rate,
        debug_level=_parse_int(DEBUG_ENV, 0),
        profile_dir=os.getenv(PROFILE_DIR_ENV) or "profile.d",
        service_name=os.getenv(SERVICE_NAME_ENV) or "shell-profile",
        fragment_cache_ttl=_parse_float(FRAGMENT_CACHE_TTL_ENV, DEFAULT_FRAGMENT_CACHE_TTL),
    )
