"""ElevenLabs text-to-speech client."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from requests import Session

from ..exceptions import ConfigurationError, ProviderError
from ..utils.logging import get_logger
from .base import SpeechSynthesisProvider
from .http import ProviderClient, provider_section, resolve_api_key

LOGGER = get_logger(__name__)

__all__ = [
    "DEFAULT_VOICE_POOL",
    "ElevenLabsSettings",
    "ElevenLabsSynthesizer",
    "build_elevenlabs_synthesizer",
]

# Rachel, Domi, Bella, Antoni, Elli
DEFAULT_VOICE_POOL: tuple[str, ...] = (
    "21m00Tcm4TlvDq8ikWAM",
    "AZnzlk1XvdvUeBnXmlld",
    "EXAVITQu4vr4xnSDxMaL",
    "ErXwobaYiN019PkySvjV",
    "MF3mGyEYCl7XYWbV9V6O",
)


@dataclass(slots=True)
class ElevenLabsSettings:
    """Static configuration for the ElevenLabs client."""

    api_base_url: str
    api_key_env: str
    model_id: str
    stability: float
    similarity_boost: float
    timeout_seconds: float
    max_retries: int
    voice_pool: list[str] = field(default_factory=lambda: list(DEFAULT_VOICE_POOL))

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> ElevenLabsSettings:
        section = provider_section(config, "elevenlabs")
        pool_raw = section.get("voice_pool")
        if pool_raw is None:
            voice_pool = list(DEFAULT_VOICE_POOL)
        elif isinstance(pool_raw, Sequence) and not isinstance(pool_raw, str):
            voice_pool = [str(voice) for voice in pool_raw if str(voice).strip()]
        else:
            raise ConfigurationError("'providers.elevenlabs.voice_pool' must be a list.")
        if not voice_pool:
            raise ConfigurationError("'providers.elevenlabs.voice_pool' must not be empty.")

        return cls(
            api_base_url=str(section.get("api_base_url")).rstrip("/"),
            api_key_env=str(section.get("api_key_env", "ELEVENLABS_API_KEY")),
            model_id=str(section.get("model_id", "eleven_multilingual_v2")),
            stability=float(section.get("stability", 0.5)),
            similarity_boost=float(section.get("similarity_boost", 0.75)),
            timeout_seconds=float(section.get("timeout_seconds", 120.0)),
            max_retries=int(section.get("max_retries", 2)),
            voice_pool=voice_pool,
        )


class ElevenLabsSynthesizer(ProviderClient, SpeechSynthesisProvider):
    """Renders one segment of text per request; returns MPEG audio bytes."""

    provider_name = "ElevenLabs"

    def __init__(
        self,
        settings: ElevenLabsSettings,
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

    @property
    def voice_pool(self) -> list[str]:
        return list(self.settings.voice_pool)

    def synthesize(self, text: str, voice_id: str, target_language: str) -> bytes:
        # The multilingual model infers the language from the text itself.
        headers = {
            "xi-api-key": resolve_api_key(self.settings.api_key_env, self._api_key),
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {
            "text": text,
            "model_id": self.settings.model_id,
            "voice_settings": {
                "stability": self.settings.stability,
                "similarity_boost": self.settings.similarity_boost,
            },
        }
        response = self._request_with_retries(
            "POST",
            f"{self.settings.api_base_url}/{voice_id}",
            json=payload,
            headers=headers,
        )
        audio = response.content
        if not audio:
            raise ProviderError(f"ElevenLabs returned no audio for voice {voice_id}.")
        LOGGER.debug(
            "ElevenLabs rendered %d bytes (voice=%s, lang=%s)",
            len(audio),
            voice_id,
            target_language,
        )
        return audio


def build_elevenlabs_synthesizer(
    config: Mapping[str, object],
    *,
    session: Session | None = None,
) -> ElevenLabsSynthesizer:
    return ElevenLabsSynthesizer(ElevenLabsSettings.from_config(config), session=session)
