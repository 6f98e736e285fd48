"""Turns user intents into gateway calls, one at a time."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from saga.client.store import ConversationStore
from saga.exceptions import NetworkError, ServiceError
from saga.models import Tone, Turn, resolve_tone

logger = logging.getLogger(__name__)

EXPLAIN_SIMPLER_PROMPT = "Can you explain that again in simpler terms, like I'm new to this?"
GIVE_EXAMPLE_PROMPT = "Can you give me a concrete, real-world example of that?"
GO_DEEPER_PROMPT = "Can you go deeper on that and explain the details behind it?"
SUMMARIZE_PROMPT = "Please summarize our conversation so far in a few short bullet points."

EMPTY_REPLY_FALLBACK = (
    "Hmm, I couldn't come up with anything. Try asking in a slightly different way?"
)
SERVER_FAILURE_REPLY = "Sorry, something went wrong on my end. Please try that again."
NETWORK_FAILURE_REPLY = (
    "Oops, I couldn't reach the server. Check your connection or try again in a bit."
)

SUGGESTIONS = (
    "Explain recursion like I'm 12",
    "Give me a real-world analogy for binary search",
    "Summarize Big-O in 3 bullet points",
    "Break down inflation step-by-step",
)


class DispatchController:
    """Single-flight dispatcher between the conversation and the gateway.

    While a request is in flight every new intent is rejected. Each
    accepted intent appends one user turn immediately and exactly one
    assistant turn when the request settles, whatever the outcome.
    """

    def __init__(
        self,
        store: ConversationStore,
        client: httpx.AsyncClient,
        api_base: str,
        tone: str | Tone = Tone.FRIENDLY,
        provider: str = "openai",
    ) -> None:
        self._store = store
        self._client = client
        self._endpoint = f"{api_base.rstrip('/')}/api/message"
        self.tone = resolve_tone(tone)
        self.provider = provider
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def store(self) -> ConversationStore:
        return self._store

    async def send(self, text: str) -> bool:
        """Dispatch a typed message; returns False when nothing was sent."""

        message = text.strip()
        if not message:
            return False
        if self._in_flight:
            logger.info("Rejected intent while a request is in flight")
            return False

        self._store.append(Turn.user(message))
        self._in_flight = True
        try:
            reply = await self._request_reply(message)
        finally:
            self._in_flight = False
        self._store.append(Turn.assistant(reply))
        return True

    async def explain_simpler(self) -> bool:
        return await self._refine(EXPLAIN_SIMPLER_PROMPT)

    async def give_example(self) -> bool:
        return await self._refine(GIVE_EXAMPLE_PROMPT)

    async def go_deeper(self) -> bool:
        return await self._refine(GO_DEEPER_PROMPT)

    async def summarize(self) -> bool:
        if len(self._store) == 0:
            return False
        return await self.send(SUMMARIZE_PROMPT)

    def reset(self) -> bool:
        """Start over from the greeting; refused while a request is in flight."""

        if self._in_flight:
            return False
        self._store.reset()
        return True

    async def _refine(self, instruction: str) -> bool:
        if not self._store.has_assistant_turn():
            return False
        return await self.send(instruction)

    async def _request_reply(self, message: str) -> str:
        """Resolve the gateway outcome into the assistant turn's text."""

        try:
            data = await self._post(message)
        except NetworkError as exc:
            logger.warning("Gateway unreachable", extra={"reason": exc.message})
            return NETWORK_FAILURE_REPLY
        except ServiceError as exc:
            logger.warning(
                "Gateway returned an error",
                extra={"status_code": exc.status_code, "reason": exc.message},
            )
            return SERVER_FAILURE_REPLY

        reply = data.get("reply") if isinstance(data, dict) else None
        if not isinstance(reply, str) or not reply.strip():
            return EMPTY_REPLY_FALLBACK
        return reply

    async def _post(self, message: str) -> Any:
        payload = {
            "message": message,
            "provider": self.provider,
            "tone": self.tone.value,
            "history": self._store.dump(),
        }

        try:
            response = await self._client.post(self._endpoint, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ServiceError(
                _error_text(exc.response),
                code="gateway_error",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError("Gateway returned a non-JSON body", code="gateway_error") from exc


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return response.text
