"""Domain records shared by the storage layer and the pipeline stages."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Project",
    "ProjectStatus",
    "Speaker",
    "StatusEvent",
    "SynthesisItem",
    "SynthesisUnit",
    "TranscriptSegment",
    "is_allowed_transition",
    "utc_now",
]


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat(timespec="milliseconds")


class ProjectStatus(str, Enum):
    """Lifecycle states of a dubbing project."""

    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    # Display-only sub-phase of transcription; never persisted by the orchestrator.
    DIARIZATION = "diarization"
    TRANSLATING = "translating"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.FAILED)

    @property
    def is_active(self) -> bool:
        """True while a pipeline run owns the project."""
        return not self.is_terminal and self is not ProjectStatus.UPLOADING


ALLOWED_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.UPLOADING: frozenset({ProjectStatus.TRANSCRIBING}),
    ProjectStatus.TRANSCRIBING: frozenset({ProjectStatus.TRANSLATING, ProjectStatus.FAILED}),
    ProjectStatus.TRANSLATING: frozenset({ProjectStatus.SYNTHESIZING, ProjectStatus.FAILED}),
    ProjectStatus.SYNTHESIZING: frozenset({ProjectStatus.COMPLETED, ProjectStatus.FAILED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.FAILED: frozenset(),
}


def is_allowed_transition(current: ProjectStatus, target: ProjectStatus) -> bool:
    """Return True when ``current -> target`` is an edge of the lifecycle graph."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass(slots=True)
class Project:
    """A user submission moving through the dubbing pipeline."""

    id: str
    name: str
    source_language: str
    target_language: str
    status: ProjectStatus
    original_audio_url: str | None = None
    dubbed_audio_url: str | None = None
    duration_seconds: float | None = None
    created_at: str | None = None
    updated_at: str | None = None
    processing_started_at: str | None = None
    processing_completed_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Project:
        return cls(
            id=row["id"],
            name=row["name"],
            source_language=row["source_language"],
            target_language=row["target_language"],
            status=ProjectStatus(row["status"]),
            original_audio_url=row["original_audio_url"],
            dubbed_audio_url=row["dubbed_audio_url"],
            duration_seconds=row["duration_seconds"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            processing_started_at=row["processing_started_at"],
            processing_completed_at=row["processing_completed_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "status": self.status.value,
            "original_audio_url": self.original_audio_url,
            "dubbed_audio_url": self.dubbed_audio_url,
            "duration_seconds": self.duration_seconds,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "processing_started_at": self.processing_started_at,
            "processing_completed_at": self.processing_completed_at,
        }


@dataclass(slots=True)
class Speaker:
    """A distinct voice detected in a project's source audio."""

    id: str
    project_id: str
    speaker_number: int
    total_duration: int = 0
    label: str | None = None
    voice_sample_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Speaker:
        return cls(
            id=row["id"],
            project_id=row["project_id"],
            speaker_number=row["speaker_number"],
            total_duration=row["total_duration"] or 0,
            label=row["label"],
            voice_sample_url=row["voice_sample_url"],
            created_at=row["created_at"],
        )


@dataclass(slots=True)
class TranscriptSegment:
    """A time-bounded utterance attributed to at most one speaker."""

    id: str
    project_id: str
    original_text: str
    start_time: float
    end_time: float
    speaker_id: str | None = None
    translated_text: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> TranscriptSegment:
        return cls(
            id=row["id"],
            project_id=row["project_id"],
            original_text=row["original_text"] or "",
            start_time=float(row["start_time"]),
            end_time=float(row["end_time"]),
            speaker_id=row["speaker_id"],
            translated_text=row["translated_text"],
            created_at=row["created_at"],
        )

    @property
    def duration(self) -> float:
        return max(self.end_time - self.start_time, 0.0)

    @property
    def display_text(self) -> str:
        """Translated text when available, otherwise the original text."""
        if self.translated_text and self.translated_text.strip():
            return self.translated_text
        return self.original_text or ""


@dataclass(slots=True)
class SynthesisItem:
    """One text-to-speech request inside a synthesis unit."""

    segment_id: str
    text: str
    start_time: float
    order: int


@dataclass(slots=True)
class SynthesisUnit:
    """Segments of one speaker grouped for text-to-speech, in chronological order."""

    speaker_id: str | None
    voice_id: str
    items: list[SynthesisItem] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class StatusEvent:
    """A persisted status transition delivered to observers."""

    project_id: str
    status: ProjectStatus
    occurred_at: str = field(default_factory=utc_now)
    detail: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "project_id": self.project_id,
            "status": self.status.value,
            "occurred_at": self.occurred_at,
        }
        if self.detail:
            payload["detail"] = self.detail
        return payload
