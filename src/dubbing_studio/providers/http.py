"""Shared HTTP plumbing for hosted provider clients."""

from __future__ import annotations

import json
import os
import time
from collections.abc import Mapping
from typing import Any, ClassVar

import requests
from requests import Response, Session

from ..exceptions import ConfigurationError, ProviderError
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

__all__ = ["ProviderClient", "provider_section", "resolve_api_key"]


def provider_section(config: Mapping[str, object], name: str) -> Mapping[str, object]:
    """Return ``providers.<name>`` or raise :class:`ConfigurationError`."""
    providers = config.get("providers")
    if not isinstance(providers, Mapping):
        raise ConfigurationError("Configuration missing 'providers' section.")
    section = providers.get(name)
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Configuration missing 'providers.{name}' section.")
    if not section.get("api_base_url"):
        raise ConfigurationError(f"Configuration 'providers.{name}.api_base_url' is required.")
    return section


def resolve_api_key(env_name: str, explicit: str | None = None) -> str:
    api_key = explicit or os.environ.get(env_name)
    if not api_key:
        raise ConfigurationError(f"API key not available. Set the environment variable {env_name}.")
    return api_key


class ProviderClient:
    """Base class for provider clients: retrying requests and JSON decoding.

    Retryable statuses and network errors back off exponentially up to
    ``max_retries`` extra attempts; any other 4xx/5xx raises :class:`ProviderError`
    straight away.
    """

    RETRY_STATUS_CODES: ClassVar[set[int]] = {429, 500, 502, 503, 504}
    provider_name: ClassVar[str] = "provider"

    def __init__(
        self,
        *,
        timeout_seconds: float,
        max_retries: int,
        session: Session | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._session = session or requests.Session()

    def _request_with_retries(self, method: str, url: str, **kwargs: Any) -> Response:
        attempts = 0
        backoff = 1.0
        last_error: Exception | None = None

        while attempts <= self.max_retries:
            try:
                response = self._session.request(
                    method, url, timeout=self.timeout_seconds, **kwargs
                )
            except requests.RequestException as exc:  # pragma: no cover - network dependent
                last_error = exc
                LOGGER.warning("%s request failed (%s); retrying.", self.provider_name, exc)
            else:
                if response.status_code < 400:
                    return response
                if response.status_code not in self.RETRY_STATUS_CODES:
                    raise ProviderError(
                        f"{self.provider_name} responded with status "
                        f"{response.status_code}: {response.text}"
                    )
                last_error = ProviderError(
                    f"Received retryable status {response.status_code}: {response.text}"
                )
                LOGGER.warning(
                    "%s returned %s; backing off for %.1fs.",
                    self.provider_name,
                    response.status_code,
                    backoff,
                )
            attempts += 1
            if attempts > self.max_retries:
                break
            time.sleep(backoff)
            backoff = min(backoff * 2, 30.0)

        raise ProviderError(f"Exceeded maximum retries for {self.provider_name}") from last_error

    def _parse_json(self, response: Response) -> dict[str, Any]:
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise ProviderError(
                f"Unable to decode {self.provider_name} response as JSON."
            ) from exc
        if not isinstance(data, Mapping):
            raise ProviderError(f"{self.provider_name} returned a non-object payload.")
        return {str(key): value for key, value in data.items()}
