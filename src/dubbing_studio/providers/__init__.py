"""External capabilities used by the pipeline and their HTTP adapters."""

from __future__ import annotations

from .base import (
    DeliverableStore,
    SpeechSynthesisProvider,
    SpeechToTextProvider,
    TranscriptPoll,
    TranslationProvider,
    Utterance,
)

__all__ = [
    "DeliverableStore",
    "SpeechSynthesisProvider",
    "SpeechToTextProvider",
    "TranscriptPoll",
    "TranslationProvider",
    "Utterance",
]
