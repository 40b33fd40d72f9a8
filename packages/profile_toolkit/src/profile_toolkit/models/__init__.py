"""Configuration models."""

from profile_toolkit.models.settings import Settings, env_flag, load_settings

__all__ = ["Settings", "env_flag", "load_settings"]
