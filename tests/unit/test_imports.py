"""Smoke tests ensuring packages import correctly."""

from __future__ import annotations

import importlib

import pytest


def test_import_dubbing_studio_package() -> None:
    assert importlib.import_module("dubbing_studio") is not None


@pytest.mark.parametrize(
    "module",
    [
        "dubbing_studio.cli",
        "dubbing_studio.pipelines.orchestrator",
        "dubbing_studio.providers.assemblyai",
        "dubbing_studio.providers.elevenlabs_api",
        "dubbing_studio.providers.openai_translate",
        "dubbing_studio.storage.migrations.migrate",
    ],
)
def test_import_entrypoint_modules(module: str) -> None:
    assert importlib.import_module(module) is not None
