"""Export a project's transcript as plain text."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ...models import Speaker, TranscriptSegment

__all__ = ["render_original_text", "render_translation_text", "summarize_transcript"]


def render_original_text(segments: Sequence[TranscriptSegment]) -> str:
    """Return the source-language text, one segment per paragraph."""
    return "\n\n".join(segment.original_text or "" for segment in segments)


def render_translation_text(segments: Sequence[TranscriptSegment]) -> str:
    """Return the translated text, one segment per paragraph.

    Untranslated segments keep their paragraph slot as an empty string so the two
    text exports line up segment by segment.
    """
    return "\n\n".join(segment.translated_text or "" for segment in segments)


def summarize_transcript(
    segments: Sequence[TranscriptSegment],
    speakers: Sequence[Speaker] = (),
) -> dict[str, Any]:
    word_count = sum(len((segment.original_text or "").split()) for segment in segments)
    translated = sum(1 for segment in segments if segment.translated_text)
    return {
        "segment_count": len(segments),
        "speaker_count": len(speakers),
        "translated_count": translated,
        "word_count": word_count,
        "duration_seconds": max((segment.end_time for segment in segments), default=0.0),
    }
