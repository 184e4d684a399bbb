"""Write transcript exports for a project to disk."""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

from ...models import Project, TranscriptSegment
from ...utils.logging import get_logger
from .export_srt import render_srt
from .export_text import render_original_text, render_translation_text

LOGGER = get_logger(__name__)

__all__ = ["export_filename_stem", "write_transcript_exports"]

_UNSAFE_CHARS = re.compile(r"[^\w\-. ]+", re.UNICODE)


def export_filename_stem(name: str, fallback: str) -> str:
    """Turn a project name into a filesystem-safe file stem."""
    stem = _UNSAFE_CHARS.sub("_", name).strip(" ._")
    return stem or fallback


def write_transcript_exports(
    project: Project,
    segments: Sequence[TranscriptSegment],
    directory: Path,
) -> dict[str, Path]:
    """Write original text, translation text and SRT files; return their paths by kind."""
    directory.mkdir(parents=True, exist_ok=True)
    stem = export_filename_stem(project.name, project.id)
    outputs = {
        "original": (directory / f"{stem}_original.txt", render_original_text(segments)),
        "translation": (directory / f"{stem}_translation.txt", render_translation_text(segments)),
        "srt": (directory / f"{stem}.srt", render_srt(segments)),
    }

    written: dict[str, Path] = {}
    for kind, (path, content) in outputs.items():
        path.write_text(content, encoding="utf-8")
        written[kind] = path
    LOGGER.info(
        "Wrote %d transcript exports for project %s to %s", len(written), project.id, directory
    )
    return written
