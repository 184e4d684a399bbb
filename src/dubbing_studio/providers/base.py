"""Abstract interfaces for the external capabilities the pipeline consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

__all__ = [
    "POLL_COMPLETED",
    "POLL_ERROR",
    "POLL_PENDING",
    "DeliverableStore",
    "SpeechSynthesisProvider",
    "SpeechToTextProvider",
    "TranscriptPoll",
    "TranslationProvider",
    "Utterance",
]

POLL_PENDING = "pending"
POLL_COMPLETED = "completed"
POLL_ERROR = "error"


@dataclass(slots=True)
class Utterance:
    """A diarized utterance as reported by the speech-to-text provider (milliseconds)."""

    speaker: str | None
    text: str
    start_ms: float
    end_ms: float


@dataclass(slots=True)
class TranscriptPoll:
    """Snapshot of a speech-to-text job."""

    status: str
    utterances: list[Utterance] | None = None
    text: str | None = None
    audio_duration: float | None = None
    error: str | None = None
    raw_status: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (POLL_COMPLETED, POLL_ERROR)


class SpeechToTextProvider(ABC):
    @abstractmethod
    def submit(self, audio_url: str, language: str | None, *, speaker_labels: bool = True) -> str:
        """Submit audio for transcription. Returns the provider job id."""

    @abstractmethod
    def poll(self, job_id: str) -> TranscriptPoll:
        """Return the current state of a submitted job."""


class TranslationProvider(ABC):
    @abstractmethod
    def translate(self, text: str, target_language: str) -> str:
        """Translate one segment of text. Returns only the translated text."""


class SpeechSynthesisProvider(ABC):
    @abstractmethod
    def synthesize(self, text: str, voice_id: str, target_language: str) -> bytes:
        """Render speech for ``text`` with the given voice. Returns encoded audio bytes."""


class DeliverableStore(ABC):
    @abstractmethod
    def put(self, data: bytes, content_type: str, *, key: str) -> str:
        """Persist ``data`` under ``key`` and return its public location."""
