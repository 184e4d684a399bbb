from __future__ import annotations

import pytest

from dubbing_studio.models import (
    ProjectStatus,
    TranscriptSegment,
    is_allowed_transition,
)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (ProjectStatus.UPLOADING, ProjectStatus.TRANSCRIBING),
        (ProjectStatus.TRANSCRIBING, ProjectStatus.TRANSLATING),
        (ProjectStatus.TRANSLATING, ProjectStatus.SYNTHESIZING),
        (ProjectStatus.SYNTHESIZING, ProjectStatus.COMPLETED),
        (ProjectStatus.TRANSLATING, ProjectStatus.FAILED),
    ],
)
def test_forward_transitions_are_allowed(current: ProjectStatus, target: ProjectStatus) -> None:
    assert is_allowed_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (ProjectStatus.UPLOADING, ProjectStatus.TRANSLATING),
        (ProjectStatus.UPLOADING, ProjectStatus.FAILED),
        (ProjectStatus.TRANSLATING, ProjectStatus.TRANSCRIBING),
        (ProjectStatus.COMPLETED, ProjectStatus.FAILED),
        (ProjectStatus.FAILED, ProjectStatus.TRANSCRIBING),
        (ProjectStatus.TRANSCRIBING, ProjectStatus.DIARIZATION),
    ],
)
def test_backward_and_terminal_transitions_are_rejected(
    current: ProjectStatus, target: ProjectStatus
) -> None:
    assert not is_allowed_transition(current, target)


def test_only_running_states_are_active() -> None:
    active = {status for status in ProjectStatus if status.is_active}

    assert active == {
        ProjectStatus.TRANSCRIBING,
        ProjectStatus.DIARIZATION,
        ProjectStatus.TRANSLATING,
        ProjectStatus.SYNTHESIZING,
    }
    assert ProjectStatus.FAILED.is_terminal
    assert not ProjectStatus.UPLOADING.is_terminal


def test_display_text_prefers_non_blank_translation() -> None:
    segment = TranscriptSegment(
        id="s", project_id="p", original_text="hello", start_time=0.0, end_time=1.0
    )
    assert segment.display_text == "hello"

    segment.translated_text = "   "
    assert segment.display_text == "hello"

    segment.translated_text = "bonjour"
    assert segment.display_text == "bonjour"
