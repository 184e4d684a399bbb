"""Global pytest fixtures for Dubbing Studio."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from dubbing_studio.exceptions import ProviderError
from dubbing_studio.pipelines.orchestrator import DubbingOrchestrator
from dubbing_studio.pipelines.synthesis import SynthesisStage
from dubbing_studio.pipelines.transcription import TranscriptionStage
from dubbing_studio.pipelines.translation import TranslationStage
from dubbing_studio.providers.base import (
    POLL_COMPLETED,
    DeliverableStore,
    SpeechSynthesisProvider,
    SpeechToTextProvider,
    TranscriptPoll,
    TranslationProvider,
    Utterance,
)
from dubbing_studio.storage.db import SQLiteDatabase
from dubbing_studio.storage.repository import ProjectStore


class FakeTranscriber(SpeechToTextProvider):
    """Replays queued poll snapshots; the last one repeats once the queue runs dry."""

    def __init__(self, polls: Iterable[TranscriptPoll], job_id: str = "job-1") -> None:
        self.polls = list(polls)
        self.job_id = job_id
        self.submissions: list[dict[str, object]] = []
        self.poll_count = 0

    def submit(self, audio_url: str, language: str | None, *, speaker_labels: bool = True) -> str:
        self.submissions.append(
            {"audio_url": audio_url, "language": language, "speaker_labels": speaker_labels}
        )
        return self.job_id

    def poll(self, job_id: str) -> TranscriptPoll:
        assert job_id == self.job_id
        self.poll_count += 1
        if len(self.polls) > 1:
            return self.polls.pop(0)
        return self.polls[0]


class FakeTranslator(TranslationProvider):
    """Prefixes text with the target language; texts in ``fail_on`` raise ProviderError."""

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        *,
        before_call: Callable[[str], None] | None = None,
    ) -> None:
        self.fail_on = set(fail_on)
        self.before_call = before_call
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def translate(self, text: str, target_language: str) -> str:
        if self.before_call is not None:
            self.before_call(text)
        with self._lock:
            self.calls.append((text, target_language))
        if text in self.fail_on:
            raise ProviderError(f"cannot translate {text!r}")
        return f"{target_language}:{text}"


class FakeSynthesizer(SpeechSynthesisProvider):
    """Returns ``<text>`` as the audio bytes; texts in ``fail_on`` raise ProviderError."""

    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def synthesize(self, text: str, voice_id: str, target_language: str) -> bytes:
        with self._lock:
            self.calls.append((text, voice_id))
        if text in self.fail_on:
            raise ProviderError(f"cannot synthesize {text!r}")
        return f"<{text}>".encode("utf-8")


class MemoryDeliverableStore(DeliverableStore):
    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}

    def put(self, data: bytes, content_type: str, *, key: str) -> str:
        self.objects[key] = (data, content_type)
        return f"memory://{key}"


def completed_poll(
    utterances: list[tuple[str | None, str, float, float]] | None = None,
    *,
    text: str | None = None,
    audio_duration: float | None = None,
) -> TranscriptPoll:
    """Build a completed snapshot from ``(speaker, text, start_ms, end_ms)`` tuples."""
    return TranscriptPoll(
        status=POLL_COMPLETED,
        utterances=[Utterance(*entry) for entry in utterances] if utterances is not None else None,
        text=text,
        audio_duration=audio_duration,
        raw_status="completed",
    )


@pytest.fixture
def database(tmp_path: Path) -> SQLiteDatabase:
    db = SQLiteDatabase(tmp_path / "dubbing.sqlite3")
    db.initialize()
    return db


@pytest.fixture
def store(database: SQLiteDatabase) -> ProjectStore:
    return ProjectStore(database)


@pytest.fixture
def deliverables() -> MemoryDeliverableStore:
    return MemoryDeliverableStore()


def make_orchestrator(
    store: ProjectStore,
    transcriber: SpeechToTextProvider,
    translator: TranslationProvider,
    synthesizer: SpeechSynthesisProvider,
    deliverables: DeliverableStore,
    **kwargs: object,
) -> DubbingOrchestrator:
    """Wire fake providers into an orchestrator that never sleeps between polls."""
    return DubbingOrchestrator(
        store=store,
        transcription=TranscriptionStage(
            store, transcriber, poll_interval_seconds=0, max_poll_attempts=5
        ),
        translation=TranslationStage(store, translator, max_workers=2),
        synthesis=SynthesisStage(
            store, synthesizer, deliverables, voice_pool=["voice-a", "voice-b"], max_workers=2
        ),
        **kwargs,
    )
