import asyncio
import json

import httpx
import pytest

from saga.client.dispatch import (
    EMPTY_REPLY_FALLBACK,
    EXPLAIN_SIMPLER_PROMPT,
    NETWORK_FAILURE_REPLY,
    SERVER_FAILURE_REPLY,
    SUMMARIZE_PROMPT,
    DispatchController,
)
from saga.client.store import DEFAULT_STORAGE_KEY, ConversationStore, FileStorage
from saga.dependencies import get_http_client
from saga.models import Role, Tone, Turn

API_BASE = "http://saga.test"


def make_controller(store: ConversationStore, handler, **kwargs) -> DispatchController:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DispatchController(store, client, API_BASE, **kwargs)


@pytest.mark.asyncio
async def test_send_appends_user_and_reply(store: ConversationStore) -> None:
    seen: list[dict] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == f"{API_BASE}/api/message"
        seen.append(json.loads(request.content.decode()))
        return httpx.Response(200, json={"reply": "Recursion is a function calling itself."})

    controller = make_controller(store, handler, tone="tutor")

    assert await controller.send("  What is recursion?  ") is True

    assert [turn.role for turn in store.turns] == ["assistant", "user", "assistant"]
    assert store.turns[1].content == "What is recursion?"
    assert store.turns[2].content == "Recursion is a function calling itself."
    assert seen[0]["message"] == "What is recursion?"
    assert seen[0]["tone"] == "tutor"
    assert seen[0]["provider"] == "openai"
    assert seen[0]["history"][-1] == {"role": "user", "content": "What is recursion?"}
    assert controller.in_flight is False


@pytest.mark.asyncio
async def test_blank_message_is_a_noop(store: ConversationStore) -> None:
    async def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    controller = make_controller(store, handler)

    assert await controller.send("   ") is False
    assert len(store) == 1


@pytest.mark.asyncio
async def test_second_intent_rejected_while_in_flight(store: ConversationStore) -> None:
    started = asyncio.Event()
    release = asyncio.Event()

    async def handler(_: httpx.Request) -> httpx.Response:
        started.set()
        await release.wait()
        return httpx.Response(200, json={"reply": "first"})

    controller = make_controller(store, handler)

    first = asyncio.create_task(controller.send("A"))
    await started.wait()
    snapshot = store.turns

    assert controller.in_flight is True
    assert await controller.send("B") is False
    assert await controller.summarize() is False
    assert await controller.explain_simpler() is False
    assert controller.reset() is False
    assert store.turns == snapshot

    release.set()
    assert await first is True
    assert [turn.content for turn in store.turns[1:]] == ["A", "first"]
    assert controller.in_flight is False


@pytest.mark.asyncio
async def test_network_failure_appends_distinct_turn(store: ConversationStore) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    controller = make_controller(store, handler)

    assert await controller.send("hello") is True
    assert store.turns[-1] == Turn.assistant(NETWORK_FAILURE_REPLY)
    assert controller.in_flight is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "body"),
    [(500, {"error": "Something went wrong talking to the AI."}), (400, {"error": "bad"})],
)
async def test_gateway_error_appends_apology(
    store: ConversationStore, status_code: int, body: dict
) -> None:
    async def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    controller = make_controller(store, handler)

    assert await controller.send("hello") is True
    assert store.turns[-1] == Turn.assistant(SERVER_FAILURE_REPLY)
    assert len(store) == 3


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback(store: ConversationStore) -> None:
    async def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"reply": ""})

    controller = make_controller(store, handler)

    await controller.send("hello")

    assert store.turns[-1] == Turn.assistant(EMPTY_REPLY_FALLBACK)


@pytest.mark.asyncio
async def test_refinement_without_assistant_turn_is_noop(storage: FileStorage) -> None:
    storage.set_item(
        DEFAULT_STORAGE_KEY,
        json.dumps({"version": 1, "turns": [{"role": "user", "content": "hi"}]}),
    )
    store = ConversationStore(storage)
    store.load()

    async def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    controller = make_controller(store, handler)

    assert await controller.explain_simpler() is False
    assert await controller.give_example() is False
    assert await controller.go_deeper() is False
    assert len(store) == 1


@pytest.mark.asyncio
async def test_refinement_and_summarize_send_fixed_instructions(store: ConversationStore) -> None:
    messages: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        messages.append(json.loads(request.content.decode())["message"])
        return httpx.Response(200, json={"reply": "ok"})

    controller = make_controller(store, handler)

    assert await controller.explain_simpler() is True
    assert await controller.summarize() is True

    assert messages == [EXPLAIN_SIMPLER_PROMPT, SUMMARIZE_PROMPT]
    assert [turn.role for turn in store.turns].count(Role.ASSISTANT.value) == 3


@pytest.mark.asyncio
async def test_quota_exceeded_end_to_end_adds_one_assistant_turn(
    app, store: ConversationStore
) -> None:
    def provider(_: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": "insufficient_quota"}})

    provider_client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
    app.dependency_overrides[get_http_client] = lambda: provider_client

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app)) as gateway:
        controller = DispatchController(store, gateway, "http://testserver", tone=Tone.FRIENDLY)
        before = len(store)

        assert await controller.send("What is Big-O?") is True

    await provider_client.aclose()

    new_turns = store.turns[before:]
    assert [turn.role for turn in new_turns] == ["user", "assistant"]
    assert new_turns[-1].content
    assert new_turns[-1].content != SERVER_FAILURE_REPLY
    assert new_turns[-1].content != NETWORK_FAILURE_REPLY


@pytest.mark.asyncio
async def test_malformed_api_base_still_appends_assistant_turn(store: ConversationStore) -> None:
    async with httpx.AsyncClient() as client:
        controller = DispatchController(store, client, "http://localhost:abc")

        assert await controller.send("hello") is True

    assert [turn.role for turn in store.turns[1:]] == ["user", "assistant"]
    assert store.turns[-1] == Turn.assistant(NETWORK_FAILURE_REPLY)
    assert controller.in_flight is False
