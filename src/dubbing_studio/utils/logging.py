"""Project-wide logging configuration helpers."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from logging import Handler, Logger
from pathlib import Path
from typing import Any

__all__ = ["configure_logging", "get_logger"]

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ROOT_LOGGER_NAME = "dubbing_studio"
QUIET_LOGGERS = ("urllib3", "requests")


def configure_logging(
    settings: Mapping[str, Any] | None = None,
    *,
    base_dir: Path | None = None,
    force: bool = True,
) -> Handler | None:
    """Configure the root logger from the ``logging`` section of the configuration.

    .. code-block:: yaml

        logging:
          level: INFO
          file:
            enabled: true
            path: logs/dubbing-studio.log

    A relative ``file.path`` is resolved against ``base_dir`` (the configured
    project root). HTTP client loggers stay at WARNING unless the level is DEBUG.
    Returns the file handler when one was installed.
    """
    settings = settings or {}
    level = _coerce_level(settings.get("level"))
    logging.basicConfig(level=level, format=DEFAULT_FORMAT, force=force)
    client_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    handler = _file_handler(settings.get("file"), base_dir)
    if handler is not None:
        logging.getLogger().addHandler(handler)
    return handler


def get_logger(name: str | None = None) -> Logger:
    """Return a module logger, defaulting to the package logger."""
    return logging.getLogger(name or ROOT_LOGGER_NAME)


def _file_handler(file_settings: Any, base_dir: Path | None) -> Handler | None:
    if not isinstance(file_settings, Mapping) or not file_settings.get("enabled"):
        return None
    raw_path = file_settings.get("path")
    if not raw_path:
        return None
    log_path = Path(str(raw_path)).expanduser()
    if not log_path.is_absolute() and base_dir is not None:
        log_path = base_dir / log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    return handler


def _coerce_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str) and level.strip():
        return logging.getLevelNamesMapping().get(level.strip().upper(), logging.INFO)
    return logging.INFO
