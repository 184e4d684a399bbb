"""Export a project's transcript in SubRip (SRT) subtitle format."""

from __future__ import annotations

from collections.abc import Sequence

from ...models import TranscriptSegment

__all__ = ["format_srt_timestamp", "render_srt"]


def render_srt(segments: Sequence[TranscriptSegment]) -> str:
    """Return SubRip entries numbered from 1, preferring the translated text."""
    entries: list[str] = []
    for index, segment in enumerate(segments, start=1):
        start_ts = format_srt_timestamp(segment.start_time)
        end_ts = format_srt_timestamp(segment.end_time)
        entries.append(f"{index}\n{start_ts} --> {end_ts}\n{segment.display_text}\n")
    return "\n".join(entries)


def format_srt_timestamp(value: float) -> str:
    """Format seconds into ``HH:MM:SS,mmm``."""
    total_milliseconds = round(max(value, 0.0) * 1000)
    total_seconds, milliseconds = divmod(total_milliseconds, 1000)
    minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{milliseconds:03d}"
