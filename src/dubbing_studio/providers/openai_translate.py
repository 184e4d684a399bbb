"""Segment translation through the OpenAI chat completions API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from requests import Session

from ..exceptions import ProviderError
from .base import TranslationProvider
from .http import ProviderClient, provider_section, resolve_api_key

__all__ = [
    "OpenAISettings",
    "OpenAITranslator",
    "build_openai_translator",
    "build_system_prompt",
]


def build_system_prompt(target_language: str) -> str:
    return (
        "You are a professional translator. "
        f"Translate the following text to {target_language}. "
        "Maintain the tone, style, and context. "
        "Only return the translated text without any additional commentary."
    )


@dataclass(slots=True)
class OpenAISettings:
    """Static configuration for the translation client."""

    api_base_url: str
    api_key_env: str
    model: str
    temperature: float
    timeout_seconds: float
    max_retries: int

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> OpenAISettings:
        section = provider_section(config, "openai")
        return cls(
            api_base_url=str(section.get("api_base_url")),
            api_key_env=str(section.get("api_key_env", "OPENAI_API_KEY")),
            model=str(section.get("model", "gpt-4o-mini")),
            temperature=float(section.get("temperature", 0.3)),
            timeout_seconds=float(section.get("timeout_seconds", 60.0)),
            max_retries=int(section.get("max_retries", 2)),
        )


class OpenAITranslator(ProviderClient, TranslationProvider):
    """Translates one segment per chat completion request."""

    provider_name = "OpenAI"

    def __init__(
        self,
        settings: OpenAISettings,
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

    def translate(self, text: str, target_language: str) -> str:
        headers = {
            "Authorization": f"Bearer {resolve_api_key(self.settings.api_key_env, self._api_key)}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(target_language)},
                {"role": "user", "content": text},
            ],
            "temperature": self.settings.temperature,
        }
        response = self._request_with_retries(
            "POST", self.settings.api_base_url, json=payload, headers=headers
        )
        return self._extract_content(self._parse_json(response))

    @staticmethod
    def _extract_content(payload: Mapping[str, object]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError("OpenAI response contained no choices.")
        first = choices[0]
        message = first.get("message") if isinstance(first, Mapping) else None
        content = message.get("content") if isinstance(message, Mapping) else None
        if not isinstance(content, str) or not content.strip():
            raise ProviderError("OpenAI response contained an empty translation.")
        return content.strip()


def build_openai_translator(
    config: Mapping[str, object],
    *,
    session: Session | None = None,
) -> OpenAITranslator:
    return OpenAITranslator(OpenAISettings.from_config(config), session=session)
