"""Tests for the configuration loader."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import pytest

import dubbing_studio.config.load as config_load
from dubbing_studio.config.load import ConfigError, default_environment, get_section, load_config


@pytest.fixture(autouse=True)
def _clear_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("DUBBING_STUDIO_"):
            monkeypatch.delenv(key, raising=False)


def test_load_dev_config_defaults() -> None:
    config = load_config("dev")

    assert config["environment"] == "dev"
    assert config["providers"]["openai"]["model"] == "gpt-4o-mini"
    assert config["providers"]["openai"]["temperature"] == pytest.approx(0.3)
    assert config["providers"]["assemblyai"]["poll_interval_seconds"] == 5
    assert config["providers"]["assemblyai"]["max_poll_attempts"] == 60
    assert len(config["providers"]["elevenlabs"]["voice_pool"]) == 5


def test_load_config_environment_override(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Environment variables prefixed with DUBBING_STUDIO_ override YAML values."""
    data_root = tmp_path / "custom"
    monkeypatch.setenv("DUBBING_STUDIO_LOGGING__LEVEL", "ERROR")
    monkeypatch.setenv("DUBBING_STUDIO_PATHS__DATA_ROOT", str(data_root))
    monkeypatch.setenv("DUBBING_STUDIO_PIPELINE__SYNTHESIS_WORKERS", "8")

    config = load_config("dev")

    assert config["logging"]["level"] == "ERROR"
    assert config["paths"]["data_root"] == str(data_root)
    assert config["pipeline"]["synthesis_workers"] == 8


def test_programmatic_overrides_merge_nested_sections() -> None:
    config = load_config("dev", overrides={"pipeline": {"max_run_seconds": 900}})

    assert config["pipeline"]["max_run_seconds"] == 900
    assert config["pipeline"]["translation_workers"] == 4


def test_schema_rejects_empty_voice_pool() -> None:
    with pytest.raises(ConfigError, match="voice_pool"):
        load_config("dev", overrides={"providers": {"elevenlabs": {"voice_pool": []}}})


def test_load_config_validation_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Invalid files raise ConfigError when validation fails."""
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    invalid_config = config_dir / "broken.yaml"
    invalid_config.write_text(
        "environment: broken\n" "paths:\n" "  data_root: ./data\n",  # missing many required fields
        encoding="utf-8",
    )

    @dataclass
    class DummyValidationError(Exception):
        path: list[str]
        message: str

    class DummyValidator:
        def __init__(self, _schema: dict[str, object]) -> None:
            pass

        def iter_errors(self, config: dict[str, object]):
            if "version" not in config:
                yield DummyValidationError(["version"], "'version' is a required property")

    monkeypatch.setattr(config_load, "Draft7Validator", DummyValidator)

    with pytest.raises(ConfigError, match="version"):
        load_config("broken", config_dir=config_dir)


def test_missing_environment_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config("staging", config_dir=tmp_path)


def test_get_section_returns_empty_mapping_for_missing_keys() -> None:
    config = {"pipeline": {"max_workers": 2}, "storage": None}

    assert get_section(config, "pipeline") == {"max_workers": 2}
    assert get_section(config, "storage") == {}
    assert get_section(config, "providers", "openai") == {}


def test_environment_selector_picks_default_file(tmp_path: Path) -> None:
    (tmp_path / "staging.yml").write_text("environment: staging\nversion: 1\n", encoding="utf-8")

    config = load_config(
        config_dir=tmp_path,
        environ={"DUBBING_STUDIO_ENV": "staging", "DUBBING_STUDIO_PIPELINE__MAX_QUEUE": "3"},
        validate=False,
    )

    assert config == {"environment": "staging", "version": 1, "pipeline": {"max_queue": 3}}
    assert default_environment({}) == "dev"
    assert default_environment({"DUBBING_STUDIO_ENV": "  "}) == "dev"


def test_file_declaring_another_environment_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "prod.yaml").write_text("environment: dev\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="declares environment 'dev'"):
        load_config("prod", config_dir=tmp_path, environ={}, validate=False)


def test_unparseable_yaml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / "dev.yaml").write_text("paths: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Could not parse"):
        load_config("dev", config_dir=tmp_path, environ={})
