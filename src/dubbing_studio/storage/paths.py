"""Helpers for deriving canonical filesystem paths from configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

__all__ = ["PathsConfig", "build_paths"]


def _normalize_path(value: str | Path, *, relative_to: Path | None = None) -> Path:
    """Return an absolute path, interpreting relative paths from ``relative_to``."""
    path = Path(value)
    if not path.is_absolute() and relative_to is not None:
        path = relative_to / path
    return path.expanduser().resolve()


@dataclass(slots=True)
class PathsConfig:
    """Resolved filesystem paths used throughout the project."""

    project_root: Path
    data_root: Path
    database: Path
    deliverables_dir: Path
    exports_dir: Path
    logs_dir: Path

    def ensure_directories(self) -> None:
        """Create directories that should always exist."""
        for directory in (
            self.data_root,
            self.database.parent,
            self.deliverables_dir,
            self.exports_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    def project_exports_dir(self, project_id: str) -> Path:
        """Directory holding transcript exports for one project."""
        return self.exports_dir / project_id


def build_paths(config: Mapping[str, object]) -> PathsConfig:
    """Construct a :class:`PathsConfig` from the parsed configuration."""
    paths_section = config.get("paths")
    if not isinstance(paths_section, Mapping):
        raise ValueError("Configuration is missing the 'paths' section.")

    project_root = _normalize_path(str(paths_section.get("project_root", ".")))

    def resolve(key: str) -> Path:
        raw_value = paths_section.get(key)
        if raw_value is None:
            raise ValueError(f"Configuration 'paths.{key}' is required.")
        return _normalize_path(str(raw_value), relative_to=project_root)

    return PathsConfig(
        project_root=project_root,
        data_root=resolve("data_root"),
        database=resolve("database"),
        deliverables_dir=resolve("deliverables_dir"),
        exports_dir=resolve("exports_dir"),
        logs_dir=resolve("logs_dir"),
    )
