"""Transcript export helpers."""

from .export_srt import format_srt_timestamp, render_srt
from .export_text import render_original_text, render_translation_text, summarize_transcript
from .writer import export_filename_stem, write_transcript_exports

__all__ = [
    "export_filename_stem",
    "format_srt_timestamp",
    "render_original_text",
    "render_srt",
    "render_translation_text",
    "summarize_transcript",
    "write_transcript_exports",
]
