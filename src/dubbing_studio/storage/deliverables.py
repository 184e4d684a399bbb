"""Filesystem-backed deliverable store for dubbed audio."""

from __future__ import annotations

import mimetypes
from collections.abc import Mapping
from pathlib import Path, PurePosixPath

from ..exceptions import StorageError
from ..providers.base import DeliverableStore
from ..utils.logging import get_logger
from .paths import PathsConfig

LOGGER = get_logger(__name__)

__all__ = ["LocalDeliverableStore", "build_deliverable_store"]


class LocalDeliverableStore(DeliverableStore):
    """Writes artifacts under a root directory and returns their public location.

    With ``public_base_url`` set (for example a static file server in front of the
    directory) locations are ``{public_base_url}/{key}``; otherwise ``file://`` URIs.
    """

    def __init__(self, root_dir: str | Path, *, public_base_url: str | None = None) -> None:
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def put(self, data: bytes, content_type: str, *, key: str) -> str:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Refusing to store artifact outside the store root: {key!r}")

        target = self.root_dir.joinpath(*relative.parts)
        if not target.suffix:
            target = target.with_suffix(mimetypes.guess_extension(content_type) or ".bin")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write deliverable {target}: {exc}") from exc

        LOGGER.info("Stored %d bytes (%s) at %s", len(data), content_type, target)
        if self.public_base_url:
            return f"{self.public_base_url}/{target.relative_to(self.root_dir).as_posix()}"
        return target.resolve().as_uri()


def build_deliverable_store(
    config: Mapping[str, object], paths: PathsConfig
) -> LocalDeliverableStore:
    storage_cfg = config.get("storage")
    public_base_url = None
    if isinstance(storage_cfg, Mapping):
        raw = storage_cfg.get("public_base_url")
        public_base_url = str(raw) if raw else None
    return LocalDeliverableStore(paths.deliverables_dir, public_base_url=public_base_url)
