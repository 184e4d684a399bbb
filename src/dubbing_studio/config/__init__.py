"""Configuration loading helpers."""

from __future__ import annotations

from .load import ConfigError, default_environment, get_section, load_config

__all__ = ["ConfigError", "default_environment", "get_section", "load_config"]
