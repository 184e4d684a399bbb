"""Project, speaker, and transcript segment persistence on top of SQLite."""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from ..exceptions import InvalidTransitionError, PipelineBusyError, ValidationError
from ..models import (
    Project,
    ProjectStatus,
    Speaker,
    TranscriptSegment,
    is_allowed_transition,
    utc_now,
)
from ..utils.logging import get_logger
from .db import SQLiteDatabase

LOGGER = get_logger(__name__)

__all__ = ["ProjectStore", "new_id"]

_PROJECT_UPDATABLE = frozenset(
    {
        "dubbed_audio_url",
        "duration_seconds",
        "processing_started_at",
        "processing_completed_at",
    }
)


def new_id() -> str:
    """Return a fresh opaque record identifier."""
    return uuid.uuid4().hex


class ProjectStore:
    """Reads and writes the records the pipeline works on.

    Status writes go through :meth:`update_status`, which refuses any transition
    that is not an edge of the lifecycle graph. Transcript rows are written in one
    transaction so a failed stage never leaves a partial transcript behind.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self.database = database

    # ------------------------------------------------------------------ #
    # Projects
    # ------------------------------------------------------------------ #
    def create_project(
        self,
        name: str,
        source_language: str,
        target_language: str,
        *,
        original_audio_url: str | None = None,
        project_id: str | None = None,
    ) -> Project:
        """Insert a project in the ``uploading`` state and return it."""
        now = utc_now()
        project = Project(
            id=project_id or new_id(),
            name=name,
            source_language=source_language,
            target_language=target_language,
            status=ProjectStatus.UPLOADING,
            original_audio_url=original_audio_url,
            created_at=now,
            updated_at=now,
        )
        self.database.execute(
            """
            INSERT INTO projects (
                id, name, source_language, target_language, status,
                original_audio_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                project.id,
                project.name,
                project.source_language,
                project.target_language,
                project.status.value,
                project.original_audio_url,
                now,
                now,
            ),
        )
        return project

    def get_project(self, project_id: str) -> Project | None:
        row = self.database.fetch_one("SELECT * FROM projects WHERE id = ?;", (project_id,))
        return Project.from_row(row) if row else None

    def require_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise ValidationError(f"Project {project_id} does not exist.")
        return project

    def list_projects(self) -> list[Project]:
        rows = self.database.fetch_all("SELECT * FROM projects ORDER BY created_at DESC;")
        return [Project.from_row(row) for row in rows]

    def claim_project(self, project_id: str) -> Project:
        """Move an ``uploading`` project to ``transcribing`` or reject the claim.

        The check and the write are one conditional UPDATE, so two concurrent
        claims for the same project cannot both succeed.
        """
        now = utc_now()
        updated = self.database.execute(
            """
            UPDATE projects
               SET status = ?, processing_started_at = ?, updated_at = ?
             WHERE id = ? AND status = ?;
            """,
            (
                ProjectStatus.TRANSCRIBING.value,
                now,
                now,
                project_id,
                ProjectStatus.UPLOADING.value,
            ),
        )
        if updated == 1:
            return self.require_project(project_id)

        project = self.require_project(project_id)
        if project.status.is_active:
            raise PipelineBusyError(
                f"Project {project_id} already has an active run ({project.status.value})."
            )
        raise ValidationError(
            f"Project {project_id} is {project.status.value} and cannot be processed again."
        )

    def update_status(
        self,
        project_id: str,
        status: ProjectStatus,
        **fields: Any,
    ) -> Project:
        """Persist a status transition together with optional project columns."""
        unknown = set(fields) - _PROJECT_UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported project fields: {sorted(unknown)}")

        with self.database.transaction() as connection:
            row = connection.execute(
                "SELECT status FROM projects WHERE id = ?;", (project_id,)
            ).fetchone()
            if row is None:
                raise ValidationError(f"Project {project_id} does not exist.")
            current = ProjectStatus(row["status"])
            if not is_allowed_transition(current, status):
                raise InvalidTransitionError(
                    f"Project {project_id}: {current.value} -> {status.value} is not allowed."
                )

            assignments = ["status = ?", "updated_at = ?"]
            parameters: list[Any] = [status.value, utc_now()]
            for column in sorted(fields):
                assignments.append(f"{column} = ?")
                parameters.append(fields[column])
            parameters.append(project_id)
            connection.execute(
                f"UPDATE projects SET {', '.join(assignments)} WHERE id = ?;",
                parameters,
            )

        LOGGER.debug("Project %s: %s -> %s", project_id, current.value, status.value)
        return self.require_project(project_id)

    def set_duration(self, project_id: str, duration_seconds: float) -> None:
        self.database.execute(
            "UPDATE projects SET duration_seconds = ?, updated_at = ? WHERE id = ?;",
            (float(duration_seconds), utc_now(), project_id),
        )

    def delete_project(self, project_id: str) -> bool:
        """Delete a project; speakers and segments cascade."""
        return self.database.execute("DELETE FROM projects WHERE id = ?;", (project_id,)) > 0

    # ------------------------------------------------------------------ #
    # Speakers and transcript segments
    # ------------------------------------------------------------------ #
    def insert_transcript(
        self,
        project_id: str,
        speakers: Sequence[Speaker],
        segments: Sequence[TranscriptSegment],
    ) -> None:
        """Insert speakers, then segments, in a single transaction."""
        now = utc_now()
        with self.database.transaction() as connection:
            connection.executemany(
                """
                INSERT INTO speakers (
                    id, project_id, speaker_number, total_duration, label,
                    voice_sample_url, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        speaker.id,
                        project_id,
                        speaker.speaker_number,
                        int(speaker.total_duration),
                        speaker.label,
                        speaker.voice_sample_url,
                        now,
                    )
                    for speaker in speakers
                ],
            )
            connection.executemany(
                """
                INSERT INTO transcript_segments (
                    id, project_id, speaker_id, original_text, translated_text,
                    start_time, end_time, position, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                [
                    (
                        segment.id,
                        project_id,
                        segment.speaker_id,
                        segment.original_text,
                        segment.translated_text,
                        float(segment.start_time),
                        float(segment.end_time),
                        position,
                        now,
                    )
                    for position, segment in enumerate(segments)
                ],
            )

    def list_speakers(self, project_id: str) -> list[Speaker]:
        rows = self.database.fetch_all(
            "SELECT * FROM speakers WHERE project_id = ? ORDER BY speaker_number;",
            (project_id,),
        )
        return [Speaker.from_row(row) for row in rows]

    def list_segments(self, project_id: str) -> list[TranscriptSegment]:
        """Return the project's segments ordered by ``start_time``."""
        rows = self.database.fetch_all(
            """
            SELECT * FROM transcript_segments
             WHERE project_id = ?
             ORDER BY start_time ASC, position ASC;
            """,
            (project_id,),
        )
        return [TranscriptSegment.from_row(row) for row in rows]

    def save_translations(self, translations: Mapping[str, str]) -> int:
        """Fill ``translated_text`` for the given segments; filled values are never overwritten."""
        if not translations:
            return 0
        with self.database.transaction() as connection:
            cursor = connection.executemany(
                """
                UPDATE transcript_segments
                   SET translated_text = ?
                 WHERE id = ? AND translated_text IS NULL;
                """,
                [(text, segment_id) for segment_id, text in translations.items()],
            )
            return cursor.rowcount
