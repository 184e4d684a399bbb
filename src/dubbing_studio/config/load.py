"""Load ``configs/<env>.yaml`` for Dubbing Studio, apply overrides and validate it."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator

__all__ = ["ConfigError", "default_environment", "get_section", "load_config"]

PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "configs"
SCHEMA_PATH = Path(__file__).with_name("schema.json")

# DUBBING_STUDIO_PROVIDERS__OPENAI__MODEL=gpt-4o -> providers.openai.model
ENV_PREFIX = "DUBBING_STUDIO_"
ENV_SEPARATOR = "__"
ENV_SELECTOR = "DUBBING_STUDIO_ENV"


class ConfigError(RuntimeError):
    """Raised when configuration loading or validation fails."""


def default_environment(environ: Mapping[str, str] | None = None) -> str:
    """Environment name from ``DUBBING_STUDIO_ENV``, falling back to ``dev``."""
    source = os.environ if environ is None else environ
    return source.get(ENV_SELECTOR, "").strip() or "dev"


def load_config(
    env: str | None = None,
    *,
    config_dir: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    validate: bool = True,
) -> dict[str, Any]:
    """Return the merged configuration for ``env``.

    Layers, later ones winning:

    1. ``<config_dir>/<env>.yaml`` (``.yml`` also accepted).
    2. ``overrides``, merged section by section.
    3. ``DUBBING_STUDIO_*`` variables from ``environ`` (default ``os.environ``);
       ``__`` separates nested keys and values are parsed as YAML scalars.

    A file whose ``environment`` key names a different environment is rejected
    so a copied file cannot silently point at the wrong database.
    """
    source = os.environ if environ is None else environ
    env = env or default_environment(source)
    path = _find_config_file(Path(config_dir) if config_dir is not None else CONFIG_DIR, env)

    config = _read_yaml(path)
    declared = config.get("environment")
    if declared is not None and declared != env:
        raise ConfigError(f"{path} declares environment '{declared}' but '{env}' was requested.")

    for layer in (overrides or {}, _overrides_from_environ(source)):
        config = _merge(config, layer)

    if validate:
        _validate_config(config)
    return config


def get_section(config: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    """Return a nested mapping, or an empty mapping when any level is missing."""
    current: Any = config
    for key in keys:
        if not isinstance(current, Mapping):
            return {}
        current = current.get(key)
    return current if isinstance(current, Mapping) else {}


# ---------------------------------------------------------------------- #
# Layers
# ---------------------------------------------------------------------- #
def _find_config_file(base_dir: Path, env: str) -> Path:
    candidates = [base_dir / f"{env}.yaml", base_dir / f"{env}.yml"]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"No configuration for environment '{env}' in {base_dir}.")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping in {path}.")
    return data


def _merge(base: Mapping[str, Any], layer: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _overrides_from_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX) or name == ENV_SELECTOR:
            continue
        keys = [
            token.strip().lower().replace("-", "_")
            for token in name[len(ENV_PREFIX) :].split(ENV_SEPARATOR)
            if token.strip()
        ]
        if not keys:
            continue
        node = overrides
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = node[key] = {}
            node = child
        node[keys[-1]] = _parse_env_value(raw)
    return overrides


def _parse_env_value(raw: str) -> Any:
    if raw == "":
        return ""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


# ---------------------------------------------------------------------- #
# Validation
# ---------------------------------------------------------------------- #
def _load_schema() -> dict[str, Any]:
    with SCHEMA_PATH.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    if not isinstance(schema, dict):
        raise ConfigError("Configuration schema must be a JSON object.")
    return schema


def _validate_config(config: Mapping[str, Any]) -> None:
    errors = sorted(
        Draft7Validator(_load_schema()).iter_errors(config),
        key=lambda error: [str(piece) for piece in error.path],
    )
    if not errors:
        return
    lines = [
        f"- {'.'.join(str(piece) for piece in error.path) or '<root>'}: {error.message}"
        for error in errors
    ]
    raise ConfigError("Configuration validation failed:\n" + "\n".join(lines)) from errors[0]
