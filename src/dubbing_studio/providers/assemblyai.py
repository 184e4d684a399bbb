"""AssemblyAI speech-to-text client with speaker labels."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from requests import Session

from ..exceptions import ProviderError
from ..utils.logging import get_logger
from .base import (
    POLL_COMPLETED,
    POLL_ERROR,
    POLL_PENDING,
    SpeechToTextProvider,
    TranscriptPoll,
    Utterance,
)
from .http import ProviderClient, provider_section, resolve_api_key

LOGGER = get_logger(__name__)

__all__ = [
    "AssemblyAISettings",
    "AssemblyAITranscriber",
    "build_assemblyai_transcriber",
]


def _maybe_float(value: object | None) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


@dataclass(slots=True)
class AssemblyAISettings:
    """Static configuration for the AssemblyAI client."""

    api_base_url: str
    api_key_env: str
    timeout_seconds: float
    max_retries: int
    poll_interval_seconds: float
    max_poll_attempts: int

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> AssemblyAISettings:
        section = provider_section(config, "assemblyai")
        return cls(
            api_base_url=str(section.get("api_base_url")).rstrip("/"),
            api_key_env=str(section.get("api_key_env", "ASSEMBLYAI_API_KEY")),
            timeout_seconds=float(section.get("timeout_seconds", 60.0)),
            max_retries=int(section.get("max_retries", 2)),
            poll_interval_seconds=float(section.get("poll_interval_seconds", 5.0)),
            max_poll_attempts=int(section.get("max_poll_attempts", 60)),
        )


class AssemblyAITranscriber(ProviderClient, SpeechToTextProvider):
    """Submits audio URLs to AssemblyAI and normalises job snapshots."""

    provider_name = "AssemblyAI"

    def __init__(
        self,
        settings: AssemblyAISettings,
        *,
        session: Session | None = None,
        api_key: str | None = None,
    ) -> None:
        super().__init__(
            timeout_seconds=settings.timeout_seconds,
            max_retries=settings.max_retries,
            session=session,
        )
        self.settings = settings
        self._api_key = api_key

    def submit(self, audio_url: str, language: str | None, *, speaker_labels: bool = True) -> str:
        payload: dict[str, object] = {
            "audio_url": audio_url,
            "speaker_labels": speaker_labels,
        }
        if language:
            payload["language_code"] = language

        response = self._request_with_retries(
            "POST",
            f"{self.settings.api_base_url}/transcript",
            json=payload,
            headers=self._headers(),
        )
        data = self._parse_json(response)
        job_id = data.get("id")
        if not isinstance(job_id, str) or not job_id:
            raise ProviderError("AssemblyAI submission response did not include a transcript id.")
        LOGGER.info("AssemblyAI transcript submitted with id %s", job_id)
        return job_id

    def poll(self, job_id: str) -> TranscriptPoll:
        response = self._request_with_retries(
            "GET",
            f"{self.settings.api_base_url}/transcript/{job_id}",
            headers=self._headers(),
        )
        return self._to_poll(self._parse_json(response))

    def _headers(self) -> dict[str, str]:
        return {
            "authorization": resolve_api_key(self.settings.api_key_env, self._api_key),
            "content-type": "application/json",
        }

    @staticmethod
    def _to_poll(payload: Mapping[str, object]) -> TranscriptPoll:
        raw_status = str(payload.get("status") or "")
        if raw_status == "completed":
            status = POLL_COMPLETED
        elif raw_status == "error":
            status = POLL_ERROR
        else:
            status = POLL_PENDING

        text_raw = payload.get("text")
        error_raw = payload.get("error")
        return TranscriptPoll(
            status=status,
            utterances=AssemblyAITranscriber._parse_utterances(payload.get("utterances")),
            text=str(text_raw) if isinstance(text_raw, str) else None,
            audio_duration=_maybe_float(payload.get("audio_duration")),
            error=str(error_raw) if error_raw else None,
            raw_status=raw_status or None,
        )

    @staticmethod
    def _parse_utterances(raw_utterances: object) -> list[Utterance] | None:
        if not isinstance(raw_utterances, Iterable) or isinstance(raw_utterances, (str, bytes)):
            return None

        utterances: list[Utterance] = []
        for entry in raw_utterances:
            if not isinstance(entry, Mapping):
                continue
            speaker_raw = entry.get("speaker")
            text_raw = entry.get("text")
            start = _maybe_float(entry.get("start")) or 0.0
            end = _maybe_float(entry.get("end"))
            utterances.append(
                Utterance(
                    speaker=str(speaker_raw) if speaker_raw not in (None, "") else None,
                    text=str(text_raw) if text_raw is not None else "",
                    start_ms=start,
                    end_ms=max(end if end is not None else start, start),
                )
            )
        return utterances


def build_assemblyai_transcriber(
    config: Mapping[str, object],
    *,
    session: Session | None = None,
) -> AssemblyAITranscriber:
    return AssemblyAITranscriber(AssemblyAISettings.from_config(config), session=session)
