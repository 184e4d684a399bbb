"""Tests for the synthesis stage: voice assignment and timeline assembly."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from conftest import FakeSynthesizer, MemoryDeliverableStore

from dubbing_studio.exceptions import NoAudioGenerated, NoUsableOutput, ValidationError
from dubbing_studio.models import Speaker, TranscriptSegment
from dubbing_studio.pipelines.synthesis import (
    AudioClip,
    SynthesisStage,
    assemble_audio,
    build_synthesis_units,
    deliverable_key,
)
from dubbing_studio.storage.repository import ProjectStore, new_id

VOICES = ["voice-1", "voice-2", "voice-3"]


def _seed(
    store: ProjectStore,
    rows: list[tuple[int | None, str, str | None, float]],
    speaker_count: int = 2,
) -> str:
    """Insert ``(speaker_number, original, translated, start)`` rows."""
    project = store.create_project("Synth", "en", "ar")
    speakers = [
        Speaker(id=new_id(), project_id=project.id, speaker_number=number)
        for number in range(1, speaker_count + 1)
    ]
    segments = [
        TranscriptSegment(
            id=new_id(),
            project_id=project.id,
            original_text=original,
            translated_text=translated,
            start_time=start,
            end_time=start + 0.5,
            speaker_id=speakers[number - 1].id if number else None,
        )
        for number, original, translated, start in rows
    ]
    store.insert_transcript(project.id, speakers, segments)
    return project.id


def test_concatenates_in_timeline_order_not_speaker_order(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project_id = _seed(
        store,
        [
            (1, "s1-first", "T0", 0.0),
            (1, "s1-second", "T2", 2.5),
            (2, "s2-only", "T1", 1.0),
        ],
    )
    provider = FakeSynthesizer()
    stage = SynthesisStage(store, provider, deliverables, voice_pool=VOICES, max_workers=3)

    outcome = stage.run(project_id, "ar")

    ((key, (data, content_type)),) = deliverables.objects.items()
    assert data == b"<T0><T1><T2>"
    assert content_type == "audio/mpeg"
    assert key.startswith(f"{project_id}/dubbed_audio_") and key.endswith(".mp3")
    assert outcome.dubbed_audio_url == f"memory://{key}"
    assert (outcome.clip_count, outcome.segment_count, outcome.failed_count) == (3, 3, 0)
    voices = dict(provider.calls)
    assert voices == {"T0": "voice-1", "T2": "voice-1", "T1": "voice-2"}


def test_untranslated_segments_fall_back_to_original(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project_id = _seed(store, [(1, "hello", "مرحبا", 0.0), (2, "untranslated", None, 1.0)])

    SynthesisStage(store, FakeSynthesizer(), deliverables, voice_pool=VOICES).run(project_id, "ar")

    ((data, _),) = deliverables.objects.values()
    assert data == "<مرحبا><untranslated>".encode("utf-8")


def test_failed_clips_are_skipped(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project_id = _seed(store, [(1, "a", "A", 0.0), (2, "b", "B", 1.0), (1, "c", "C", 2.0)])
    stage = SynthesisStage(store, FakeSynthesizer(fail_on={"B"}), deliverables, voice_pool=VOICES)

    outcome = stage.run(project_id, "ar")

    ((data, _),) = deliverables.objects.values()
    assert data == b"<A><C>"
    assert (outcome.clip_count, outcome.failed_count, outcome.partial) == (2, 1, True)


def test_zero_clips_raises_no_audio_generated(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project_id = _seed(store, [(1, "a", "A", 0.0), (2, "b", "B", 1.0)])
    stage = SynthesisStage(
        store, FakeSynthesizer(fail_on={"A", "B"}), deliverables, voice_pool=VOICES
    )

    with pytest.raises(NoAudioGenerated):
        stage.run(project_id, "ar")
    assert deliverables.objects == {}


def test_no_text_anywhere_is_no_usable_output(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project_id = _seed(store, [(1, "", None, 0.0), (2, "  ", "", 1.0)])
    provider = FakeSynthesizer()

    with pytest.raises(NoUsableOutput):
        SynthesisStage(store, provider, deliverables, voice_pool=VOICES).run(project_id, "ar")
    assert provider.calls == []


def test_no_segments_is_a_validation_error(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    project = store.create_project("Empty", "en", "ar")
    stage = SynthesisStage(store, FakeSynthesizer(), deliverables, voice_pool=VOICES)

    with pytest.raises(ValidationError):
        stage.run(project.id, "ar")


def test_voices_are_reused_round_robin() -> None:
    segments = [
        TranscriptSegment(
            id=f"seg-{index}",
            project_id="p",
            original_text=f"text {index}",
            start_time=float(index),
            end_time=float(index) + 1,
            speaker_id=f"spk-{index}",
        )
        for index in range(4)
    ]

    units = build_synthesis_units(segments, ["v1", "v2", "v3"])

    assert [unit.voice_id for unit in units] == ["v1", "v2", "v3", "v1"]


def test_segments_without_speaker_share_one_unit() -> None:
    segments = [
        TranscriptSegment(
            id=f"seg-{index}",
            project_id="p",
            original_text="text",
            start_time=float(index),
            end_time=float(index) + 1,
            speaker_id=speaker,
        )
        for index, speaker in enumerate([None, "spk", None])
    ]

    units = build_synthesis_units(segments, ["v1", "v2"])

    assert [(unit.speaker_id, len(unit.items)) for unit in units] == [(None, 2), ("spk", 1)]
    assert [item.order for item in units[0].items] == [0, 2]


def test_assemble_audio_orders_by_start_then_load_order() -> None:
    clips = [
        AudioClip(segment_id="c", start_time=1.0, order=2, audio=b"C"),
        AudioClip(segment_id="a", start_time=0.0, order=0, audio=b"A"),
        AudioClip(segment_id="b", start_time=1.0, order=1, audio=b"B"),
    ]

    assert assemble_audio(clips) == b"ABC"


def test_deliverable_key_uses_millisecond_timestamp() -> None:
    moment = datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=UTC)

    assert deliverable_key("proj", now=moment) == "proj/dubbed_audio_1714564800250.mp3"


def test_empty_voice_pool_is_rejected(
    store: ProjectStore, deliverables: MemoryDeliverableStore
) -> None:
    with pytest.raises(ValueError):
        SynthesisStage(store, FakeSynthesizer(), deliverables, voice_pool=[])
