"""Transcription stage: diarized speech-to-text with bounded polling."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from ..exceptions import PollingTimeout, ProviderError, ValidationError
from ..providers.base import POLL_COMPLETED, POLL_ERROR, SpeechToTextProvider, TranscriptPoll
from ..storage.repository import ProjectStore
from ..utils.logging import get_logger
from .speakers import AggregatedTranscript, build_implicit_speaker_transcript, build_transcript

LOGGER = get_logger(__name__)

__all__ = ["TranscriptionOutcome", "TranscriptionStage"]

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_POLL_ATTEMPTS = 60


@dataclass(slots=True)
class TranscriptionOutcome:
    speaker_count: int
    segment_count: int
    diarized: bool
    audio_duration: float | None = None


class TranscriptionStage:
    """Submits audio, waits for the provider job, and writes speakers and segments.

    Nothing is written until the job has completed; speakers and segments then go
    in one transaction, so a failed run leaves no transcript rows.
    """

    def __init__(
        self,
        store: ProjectStore,
        provider: SpeechToTextProvider,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        on_poll: Callable[[int, TranscriptPoll], None] | None = None,
    ) -> None:
        if max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1.")
        self.store = store
        self.provider = provider
        self.poll_interval_seconds = max(0.0, poll_interval_seconds)
        self.max_poll_attempts = max_poll_attempts
        self._on_poll = on_poll

    def run(self, project_id: str, audio_url: str, source_language: str) -> TranscriptionOutcome:
        if not audio_url:
            raise ValidationError("An audio URL is required for transcription.")

        LOGGER.info("Transcription: starting for project %s", project_id)
        job_id = self.provider.submit(audio_url, source_language, speaker_labels=True)
        result = self._wait_for_completion(job_id)

        if result.utterances:
            transcript = build_transcript(project_id, result.utterances)
            diarized = True
        else:
            LOGGER.info(
                "Transcription: no speaker breakdown for project %s; using a single speaker.",
                project_id,
            )
            transcript = build_implicit_speaker_transcript(
                project_id, result.text, result.audio_duration
            )
            diarized = False

        self._persist(project_id, transcript, result.audio_duration)
        LOGGER.info(
            "Transcription: created %d speakers and %d segments for project %s",
            len(transcript.speakers),
            len(transcript.segments),
            project_id,
        )
        return TranscriptionOutcome(
            speaker_count=len(transcript.speakers),
            segment_count=len(transcript.segments),
            diarized=diarized,
            audio_duration=result.audio_duration,
        )

    def _wait_for_completion(self, job_id: str) -> TranscriptPoll:
        for attempt in range(1, self.max_poll_attempts + 1):
            result = self.provider.poll(job_id)
            if self._on_poll is not None:
                self._on_poll(attempt, result)

            if result.status == POLL_COMPLETED:
                LOGGER.info("Transcription: job %s completed after %d poll(s)", job_id, attempt)
                return result
            if result.status == POLL_ERROR:
                raise ProviderError(
                    f"Transcription job {job_id} failed: {result.error or 'unknown error'}"
                )

            LOGGER.debug(
                "Transcription: job %s is %s (attempt %d/%d)",
                job_id,
                result.raw_status or result.status,
                attempt,
                self.max_poll_attempts,
            )
            if attempt < self.max_poll_attempts:
                time.sleep(self.poll_interval_seconds)

        raise PollingTimeout(
            f"Transcription job {job_id} did not complete after {self.max_poll_attempts} polls."
        )

    def _persist(
        self,
        project_id: str,
        transcript: AggregatedTranscript,
        audio_duration: float | None,
    ) -> None:
        self.store.insert_transcript(project_id, transcript.speakers, transcript.segments)
        if audio_duration is not None:
            self.store.set_duration(project_id, audio_duration)
