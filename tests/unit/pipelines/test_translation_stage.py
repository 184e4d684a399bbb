"""Tests for the translation stage."""

from __future__ import annotations

import pytest
from conftest import FakeTranslator

from dubbing_studio.exceptions import ConfigurationError, NoUsableOutput, ValidationError
from dubbing_studio.models import TranscriptSegment
from dubbing_studio.pipelines.translation import TranslationStage
from dubbing_studio.storage.repository import ProjectStore, new_id


def _seed(store: ProjectStore, texts: list[str]) -> str:
    project = store.create_project("Translate", "en", "ar")
    segments = [
        TranscriptSegment(
            id=new_id(),
            project_id=project.id,
            original_text=text,
            start_time=float(index),
            end_time=float(index) + 0.5,
        )
        for index, text in enumerate(texts)
    ]
    store.insert_transcript(project.id, [], segments)
    return project.id


def test_translates_every_segment(store: ProjectStore) -> None:
    project_id = _seed(store, ["one", "two", "three"])
    provider = FakeTranslator()

    outcome = TranslationStage(store, provider, max_workers=2).run(project_id, "ar")

    assert (outcome.translated_count, outcome.total_count, outcome.partial) == (3, 3, False)
    assert [s.translated_text for s in store.list_segments(project_id)] == [
        "ar:one",
        "ar:two",
        "ar:three",
    ]
    assert sorted(text for text, _ in provider.calls) == ["one", "three", "two"]


def test_provider_error_skips_only_that_segment(store: ProjectStore) -> None:
    project_id = _seed(store, ["a", "b", "c", "d"])
    provider = FakeTranslator(fail_on={"c"})

    outcome = TranslationStage(store, provider).run(project_id, "ar")

    assert (outcome.translated_count, outcome.total_count) == (3, 4)
    assert outcome.failed_count == 1
    assert outcome.partial is True
    translated = {s.original_text: s.translated_text for s in store.list_segments(project_id)}
    assert translated == {"a": "ar:a", "b": "ar:b", "c": None, "d": "ar:d"}


def test_rerun_only_attempts_missing_translations(store: ProjectStore) -> None:
    project_id = _seed(store, ["a", "b"])
    TranslationStage(store, FakeTranslator(fail_on={"b"})).run(project_id, "ar")

    retry = FakeTranslator()
    outcome = TranslationStage(store, retry).run(project_id, "ar")

    assert retry.calls == [("b", "ar")]
    assert (outcome.translated_count, outcome.total_count, outcome.attempted_count) == (2, 2, 1)
    assert [s.translated_text for s in store.list_segments(project_id)] == ["ar:a", "ar:b"]


def test_all_failures_still_succeed_with_zero_translated(store: ProjectStore) -> None:
    project_id = _seed(store, ["a", "b"])

    outcome = TranslationStage(store, FakeTranslator(fail_on={"a", "b"})).run(project_id, "ar")

    assert (outcome.translated_count, outcome.total_count, outcome.failed_count) == (0, 2, 2)


def test_blank_segments_are_not_sent(store: ProjectStore) -> None:
    project_id = _seed(store, ["hello", "   "])
    provider = FakeTranslator()

    outcome = TranslationStage(store, provider).run(project_id, "ar")

    assert provider.calls == [("hello", "ar")]
    assert (outcome.translated_count, outcome.total_count) == (1, 2)


def test_no_segments_is_a_validation_error(store: ProjectStore) -> None:
    project = store.create_project("Empty", "en", "ar")

    with pytest.raises(ValidationError):
        TranslationStage(store, FakeTranslator()).run(project.id, "ar")


def test_no_text_to_translate_is_no_usable_output(store: ProjectStore) -> None:
    project_id = _seed(store, ["", "  "])

    with pytest.raises(NoUsableOutput):
        TranslationStage(store, FakeTranslator()).run(project_id, "ar")


def test_configuration_error_aborts_the_stage(store: ProjectStore) -> None:
    project_id = _seed(store, ["a", "b"])

    def missing_key(_text: str) -> None:
        raise ConfigurationError("OPENAI_API_KEY is not set")

    with pytest.raises(ConfigurationError):
        TranslationStage(store, FakeTranslator(before_call=missing_key)).run(project_id, "ar")

    assert all(s.translated_text is None for s in store.list_segments(project_id))
