from __future__ import annotations

from pathlib import Path

import pytest

from dubbing_studio.exceptions import StorageError
from dubbing_studio.storage.deliverables import LocalDeliverableStore, build_deliverable_store
from dubbing_studio.storage.paths import build_paths


def test_put_writes_bytes_and_returns_file_uri(tmp_path: Path) -> None:
    store = LocalDeliverableStore(tmp_path / "dubbed")

    url = store.put(b"ID3audio", "audio/mpeg", key="proj/dubbed_audio_1.mp3")

    target = tmp_path / "dubbed" / "proj" / "dubbed_audio_1.mp3"
    assert target.read_bytes() == b"ID3audio"
    assert url == target.resolve().as_uri()


def test_put_uses_public_base_url(tmp_path: Path) -> None:
    store = LocalDeliverableStore(tmp_path, public_base_url="https://cdn.example.com/dubbed/")

    url = store.put(b"x", "audio/mpeg", key="proj/out.mp3")

    assert url == "https://cdn.example.com/dubbed/proj/out.mp3"


@pytest.mark.parametrize("key", ["../escape.mp3", "/abs/path.mp3", "proj/../../x.mp3"])
def test_put_rejects_keys_outside_root(tmp_path: Path, key: str) -> None:
    store = LocalDeliverableStore(tmp_path)

    with pytest.raises(StorageError):
        store.put(b"x", "audio/mpeg", key=key)


def test_put_wraps_filesystem_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")
    store = LocalDeliverableStore(blocker)

    with pytest.raises(StorageError):
        store.put(b"x", "audio/mpeg", key="proj/out.mp3")


def test_build_deliverable_store_from_config(tmp_path: Path) -> None:
    config = {
        "paths": {
            "project_root": str(tmp_path),
            "data_root": "data",
            "database": "data/db.sqlite3",
            "deliverables_dir": "data/dubbed",
            "exports_dir": "data/exports",
            "logs_dir": "logs",
        },
        "storage": {"public_base_url": "https://files.example.com"},
    }
    paths = build_paths(config)

    store = build_deliverable_store(config, paths)

    assert store.root_dir == tmp_path.resolve() / "data" / "dubbed"
    assert store.public_base_url == "https://files.example.com"
    assert paths.project_exports_dir("abc") == tmp_path.resolve() / "data" / "exports" / "abc"
