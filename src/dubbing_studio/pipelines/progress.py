"""Stage checklist derived from a project's status, for progress displays."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..models import ProjectStatus

__all__ = [
    "STAGE_ACTIVE",
    "STAGE_COMPLETED",
    "STAGE_FAILED",
    "STAGE_PENDING",
    "CHECKLIST_STAGES",
    "StageState",
    "build_stage_checklist",
    "progress_percent",
]

STAGE_PENDING = "pending"
STAGE_ACTIVE = "active"
STAGE_COMPLETED = "completed"
STAGE_FAILED = "failed"

CHECKLIST_STAGES: tuple[tuple[ProjectStatus, str], ...] = (
    (ProjectStatus.UPLOADING, "Uploading file"),
    (ProjectStatus.TRANSCRIBING, "Transcribing audio"),
    (ProjectStatus.DIARIZATION, "Identifying speakers"),
    (ProjectStatus.TRANSLATING, "Translating text"),
    (ProjectStatus.SYNTHESIZING, "Generating voices"),
    (ProjectStatus.COMPLETED, "Processing complete"),
)


@dataclass(slots=True)
class StageState:
    stage: ProjectStatus
    label: str
    state: str = STAGE_PENDING

    def to_dict(self) -> dict[str, Any]:
        return {"stage": self.stage.value, "label": self.label, "state": self.state}


def _stage_index(status: ProjectStatus) -> int:
    for index, (stage, _) in enumerate(CHECKLIST_STAGES):
        if stage is status:
            return index
    raise ValueError(f"{status.value} is not a checklist stage.")


def build_stage_checklist(
    status: ProjectStatus | str,
    previous: ProjectStatus | str | None = None,
) -> list[StageState]:
    """Map ``status`` onto the six display stages.

    Stages before the current one are completed and the current one is active;
    ``completed`` marks every stage completed. A failed project only stores
    ``failed``, so the stage that was running is taken from ``previous``; without
    it the checklist shows the upload done and nothing failed.
    """
    status = ProjectStatus(status)
    checklist = [StageState(stage=stage, label=label) for stage, label in CHECKLIST_STAGES]
    checklist[0].state = STAGE_COMPLETED

    if status is ProjectStatus.FAILED:
        if previous is None:
            return checklist
        previous = ProjectStatus(previous)
        if previous.is_terminal:
            return build_stage_checklist(previous)
        checklist = build_stage_checklist(previous)
        for entry in checklist:
            if entry.state == STAGE_ACTIVE:
                entry.state = STAGE_FAILED
        return checklist

    if status is ProjectStatus.COMPLETED:
        for entry in checklist:
            entry.state = STAGE_COMPLETED
        return checklist

    current = _stage_index(status)
    for index, entry in enumerate(checklist):
        if index < current:
            entry.state = STAGE_COMPLETED
        elif index == current:
            entry.state = STAGE_ACTIVE
    return checklist


def progress_percent(
    status: ProjectStatus | str,
    previous: ProjectStatus | str | None = None,
) -> float:
    """Share of completed checklist stages, from 0 to 100."""
    checklist = build_stage_checklist(status, previous)
    completed = sum(1 for entry in checklist if entry.state == STAGE_COMPLETED)
    return completed / len(checklist) * 100.0
