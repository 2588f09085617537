"""LLM provider abstraction layer.

Every model-backed step (location extraction, post classification) talks to
an :class:`LLMProvider` instead of a vendor endpoint, so the backend can be
switched without touching extraction code.

Providers
---------
- **OpenAIResponsesProvider**: OpenAI ``/v1/responses`` (default)
- **GeminiProvider**: Google ``generateContent`` REST endpoint

Selection is driven by the ``LLM_PROVIDER`` environment variable
(``"openai_responses"`` or ``"gemini"``).  ``get_provider()`` returns a
process-wide singleton.

Providers never raise for transport or decode problems: a failed call
returns ``None`` and logs a warning, and callers fall back to the
rule-based path.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

import httpx

from .llm_utils import extract_gemini_text, extract_json_object, extract_responses_text

_log = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Abstract base for LLM completions."""

    @abstractmethod
    def complete(
        self,
        *,
        system: str,
        user: str,
        json_schema: dict[str, Any] | None = None,
        schema_name: str = "response",
        timeout: float = 30.0,
    ) -> dict[str, Any] | str | None:
        """Run one completion.

        Returns a ``dict`` when *json_schema* is given and the output
        decodes, a ``str`` for free-form completions, and ``None`` on any
        failure.
        """

    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""

    def is_configured(self) -> bool:
        return True


def _decode(text: str, json_schema: dict[str, Any] | None) -> dict[str, Any] | str | None:
    if not text:
        return None
    if json_schema is None:
        return text
    return extract_json_object(text)


class OpenAIResponsesProvider(LLMProvider):
    """Provider backed by OpenAI ``/v1/responses``."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://api.openai.com",
        client: httpx.Client | None = None,
    ) -> None:
        from .settings import get_openai_api_key, get_openai_model

        self._api_key = get_openai_api_key() if api_key is None else api_key
        self._model = model or get_openai_model()
        self._endpoint = f"{base_url.rstrip('/')}/v1/responses"
        self._client = client

    def name(self) -> str:
        return f"openai_responses ({self._model})"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def complete(
        self,
        *,
        system: str,
        user: str,
        json_schema: dict[str, Any] | None = None,
        schema_name: str = "response",
        timeout: float = 30.0,
    ) -> dict[str, Any] | str | None:
        if not self._api_key:
            _log.warning("No OpenAI API key configured, skipping LLM call")
            return None

        body: dict[str, Any] = {
            "model": self._model,
            "input": [
                {"role": "system", "content": [{"type": "input_text", "text": system}]},
                {"role": "user", "content": [{"type": "input_text", "text": user}]},
            ],
        }
        if json_schema is not None:
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "schema": json_schema,
                    "strict": True,
                }
            }

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = self._client.post(self._endpoint, headers=headers, json=body, timeout=timeout)
                response.raise_for_status()
                payload = response.json()
            else:
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(self._endpoint, headers=headers, json=body)
                    response.raise_for_status()
                    payload = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            _log.warning("OpenAI call failed: %s", exc)
            return None

        if not isinstance(payload, dict):
            return None
        return _decode(extract_responses_text(payload), json_schema)


class GeminiProvider(LLMProvider):
    """Provider backed by the Gemini ``generateContent`` REST endpoint.

    Model names are tried in order; the first one that answers wins.
    Gemini has no strict-schema mode on this path, so JSON requests are
    decoded from the first object found in the reply.
    """

    fallback_models: Sequence[str] = (
        "gemini-2.5-flash-lite",
        "gemini-2.0-flash",
        "gemini-1.5-flash",
    )

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://generativelanguage.googleapis.com",
        client: httpx.Client | None = None,
    ) -> None:
        from .settings import get_gemini_api_key, get_gemini_model

        self._api_key = get_gemini_api_key() if api_key is None else api_key
        preferred = model or get_gemini_model()
        self._models = [preferred] + [m for m in self.fallback_models if m != preferred]
        self._base_url = base_url.rstrip("/")
        self._client = client

    def name(self) -> str:
        return f"gemini ({self._models[0]})"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _post(self, model: str, body: dict[str, Any], timeout: float) -> dict[str, Any]:
        url = f"{self._base_url}/v1beta/models/{model}:generateContent"
        params = {"key": self._api_key}
        if self._client is not None:
            response = self._client.post(url, params=params, json=body, timeout=timeout)
            response.raise_for_status()
            return response.json()
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, params=params, json=body)
            response.raise_for_status()
            return response.json()

    def complete(
        self,
        *,
        system: str,
        user: str,
        json_schema: dict[str, Any] | None = None,
        schema_name: str = "response",
        timeout: float = 30.0,
    ) -> dict[str, Any] | str | None:
        if not self._api_key:
            _log.warning("No Gemini API key configured, skipping LLM call")
            return None

        body: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": user}]}],
        }
        if json_schema is not None:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        for model in self._models:
            try:
                payload = self._post(model, body, timeout)
            except (httpx.HTTPError, json.JSONDecodeError) as exc:
                _log.warning("Gemini model %s failed: %s", model, exc)
                continue
            if not isinstance(payload, dict):
                continue
            return _decode(extract_gemini_text(payload), json_schema)
        return None


# ── Provider registry ────────────────────────────────────────────────

_PROVIDERS: dict[str, type[LLMProvider]] = {
    "openai_responses": OpenAIResponsesProvider,
    "gemini": GeminiProvider,
}

_provider_instance: LLMProvider | None = None


def get_provider(
    *,
    provider_name: str | None = None,
    reset: bool = False,
    **kwargs: Any,
) -> LLMProvider:
    """Return the configured provider singleton.

    ``reset=True`` rebuilds it, which tests use after patching the
    environment.
    """
    global _provider_instance

    if _provider_instance is not None and not reset:
        return _provider_instance

    from .settings import get_llm_provider_name

    name = provider_name or get_llm_provider_name()
    cls = _PROVIDERS.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown LLM provider {name!r}. "
            f"Available: {', '.join(sorted(_PROVIDERS))}"
        )

    _provider_instance = cls(**kwargs)
    _log.info("LLM provider initialised: %s", _provider_instance.name())
    return _provider_instance


def register_provider(name: str, cls: type[LLMProvider]) -> None:
    _PROVIDERS[name] = cls
    _log.info("Registered LLM provider: %s -> %s", name, cls.__name__)
