"""Derive speaker records from raw diarized utterances."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from ..models import Speaker, TranscriptSegment
from ..providers.base import Utterance
from ..storage.repository import new_id

__all__ = [
    "AggregatedTranscript",
    "SpeakerStats",
    "aggregate_speakers",
    "build_implicit_speaker_transcript",
    "build_transcript",
    "ms_to_seconds",
    "whole_seconds",
]


def ms_to_seconds(value: float) -> float:
    return round(float(value) / 1000.0, 3)


def whole_seconds(seconds: float) -> int:
    """Round to whole seconds with halves going up (2.5 -> 3)."""
    return math.floor(seconds + 0.5)


@dataclass(slots=True)
class SpeakerStats:
    """Per-label aggregate computed from the diarization output."""

    label: str
    speaker_number: int
    first_index: int
    utterance_count: int
    total_duration_ms: float

    @property
    def total_duration_seconds(self) -> int:
        """Talk time in whole seconds."""
        return whole_seconds(self.total_duration_ms / 1000.0)


@dataclass(slots=True)
class AggregatedTranscript:
    """Speakers and segments ready to be inserted together."""

    speakers: list[Speaker]
    segments: list[TranscriptSegment]


def aggregate_speakers(utterances: Sequence[Utterance]) -> list[SpeakerStats]:
    """Group utterances by label and number the labels 1..N.

    Numbers follow the first appearance of each label in ``utterances``; labels
    that first appear at the same position sort lexically. Utterances without a
    label are not attributed to any speaker.
    """
    first_seen: dict[str, int] = {}
    durations: dict[str, float] = {}
    counts: dict[str, int] = {}

    for index, utterance in enumerate(utterances):
        label = utterance.speaker
        if not label:
            continue
        first_seen.setdefault(label, index)
        durations[label] = durations.get(label, 0.0) + max(
            utterance.end_ms - utterance.start_ms, 0.0
        )
        counts[label] = counts.get(label, 0) + 1

    ordered = sorted(first_seen, key=lambda label: (first_seen[label], label))
    return [
        SpeakerStats(
            label=label,
            speaker_number=number,
            first_index=first_seen[label],
            utterance_count=counts[label],
            total_duration_ms=durations[label],
        )
        for number, label in enumerate(ordered, start=1)
    ]


def build_transcript(project_id: str, utterances: Sequence[Utterance]) -> AggregatedTranscript:
    """Turn diarized utterances into speaker rows and second-based segments."""
    stats = aggregate_speakers(utterances)
    speakers = [
        Speaker(
            id=new_id(),
            project_id=project_id,
            speaker_number=entry.speaker_number,
            total_duration=entry.total_duration_seconds,
            label=entry.label,
        )
        for entry in stats
    ]
    speaker_ids = {speaker.label: speaker.id for speaker in speakers}

    segments = []
    for utterance in utterances:
        start = ms_to_seconds(utterance.start_ms)
        segments.append(
            TranscriptSegment(
                id=new_id(),
                project_id=project_id,
                speaker_id=speaker_ids.get(utterance.speaker) if utterance.speaker else None,
                original_text=utterance.text.strip(),
                start_time=start,
                end_time=max(ms_to_seconds(utterance.end_ms), start),
            )
        )
    return AggregatedTranscript(speakers=speakers, segments=segments)


def build_implicit_speaker_transcript(
    project_id: str,
    text: str | None,
    audio_duration: float | None = None,
) -> AggregatedTranscript:
    """Attribute the whole transcript to a single speaker when no diarization is available."""
    duration = max(float(audio_duration or 0.0), 0.0)
    speaker = Speaker(
        id=new_id(),
        project_id=project_id,
        speaker_number=1,
        total_duration=whole_seconds(duration),
    )
    segment = TranscriptSegment(
        id=new_id(),
        project_id=project_id,
        speaker_id=speaker.id,
        original_text=(text or "").strip(),
        start_time=0.0,
        end_time=duration,
    )
    return AggregatedTranscript(speakers=[speaker], segments=[segment])
