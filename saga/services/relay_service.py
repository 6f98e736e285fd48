"""Adapter for OpenAI chat completions."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from saga.config import Settings
from saga.exceptions import (
    ProviderError,
    ProviderErrorKind,
    ProviderUnknownError,
    classify_provider_error,
)

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are SAGA, a friendly AI explainer that makes any topic clear and approachable."
)

NOT_CONFIGURED_REPLY = "SAGA: The AI key is not configured on the server yet."

QUOTA_EXCEEDED_REPLY = (
    "SAGA here. I've used up my thinking budget with the AI provider for now, "
    "so I can't answer just yet. Please try again later, and I'll pick up right where we left off."
)

RATE_LIMITED_REPLY = (
    "SAGA needs a moment! A lot of questions are coming in at once. "
    "Give it a few seconds and send that again."
)

_POLITE_REPLIES: dict[ProviderErrorKind, str] = {
    ProviderErrorKind.QUOTA_EXCEEDED: QUOTA_EXCEEDED_REPLY,
    ProviderErrorKind.RATE_LIMITED: RATE_LIMITED_REPLY,
}


class RelayService:
    """Forwards assembled prompts to OpenAI's chat completions endpoint."""

    _endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def complete(self, prompt: str) -> str:
        """Relay ``prompt`` and return the reply text.

        Quota and rate-limit failures come back as polite reply strings.
        Only unclassified failures raise ``ProviderUnknownError``.
        """

        if not self._settings.provider_configured:
            logger.error("OPENAI_API_KEY is not configured; returning placeholder reply")
            return NOT_CONFIGURED_REPLY

        try:
            return await self._request_completion(prompt)
        except ProviderError as exc:
            polite = _POLITE_REPLIES.get(exc.kind)
            if polite is None:
                raise
            logger.warning(
                "Provider call degraded to polite reply",
                extra={"kind": exc.kind.value, "status_code": exc.status_code},
            )
            return polite

    async def _request_completion(self, prompt: str) -> str:
        payload = {
            "model": self._settings.chat_model,
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self._settings.chat_max_tokens,
            "temperature": self._settings.chat_temperature,
        }

        headers = {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._client.post(
                self._endpoint,
                headers=headers,
                json=payload,
                timeout=self._settings.chat_timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Chat completion timed out", exc_info=exc)
            raise ProviderUnknownError("Chat provider timed out") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            kind = classify_provider_error(status_code, _safe_json(exc.response))
            logger.error(
                "Chat completion failed",
                extra={
                    "status_code": status_code,
                    "kind": kind.value,
                    "response_text": exc.response.text,
                },
            )
            raise ProviderError.from_kind(
                kind, "Chat provider returned an error", status_code=status_code
            ) from exc
        except httpx.HTTPError as exc:
            logger.exception("Unexpected chat HTTP error")
            raise ProviderUnknownError("Chat provider request failed") from exc

        data = _safe_json(response)
        if data is None:
            logger.error("Non-JSON chat response", extra={"response_text": response.text})
            raise ProviderUnknownError("Invalid chat response payload")

        return _first_choice_text(data)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _first_choice_text(data: Any) -> str:
    """Return the first candidate's content, or an empty string."""

    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices or not isinstance(choices, list):
        logger.info("Chat response carried no choices")
        return ""

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""
