"""Interactive terminal chat against a running SAGA relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib

import httpx

from saga.client.config import ClientSettings
from saga.client.dispatch import SUGGESTIONS, DispatchController
from saga.client.store import ConversationStore, FileStorage
from saga.models import Tone, Turn, resolve_tone

HELP_TEXT = """Commands:
  /simpler      explain the last answer more simply
  /example      ask for an example
  /deeper       go deeper on the last answer
  /summarize    summarize this chat
  /tone NAME    switch tone (friendly, tutor, professional)
  /history      print the whole conversation
  /reset        start a new conversation
  /quit         exit"""


def _speaker(turn: Turn) -> str:
    return "you" if turn.is_user else "SAGA"


def _print_turn(turn: Turn) -> None:
    print(f"{_speaker(turn)}> {turn.content}\n")


async def run_chat(
    url: str, state_dir: pathlib.Path, tone: str, provider: str, timeout: float
) -> None:
    """Read lines from stdin and relay them until the user quits."""

    logger = logging.getLogger("saga_chat")
    store = ConversationStore(FileStorage(state_dir))
    store.load()
    logger.info("Loaded conversation with %d turns from %s", len(store), state_dir)

    for turn in store.turns:
        _print_turn(turn)
    print("Try: " + " | ".join(SUGGESTIONS))
    print("Type /help for commands.\n")

    async with httpx.AsyncClient(timeout=timeout) as client:
        controller = DispatchController(store, client, url, tone=tone, provider=provider)
        intents = {
            "/simpler": controller.explain_simpler,
            "/example": controller.give_example,
            "/deeper": controller.go_deeper,
            "/summarize": controller.summarize,
        }

        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break

            command, _, argument = line.strip().partition(" ")
            if command in {"/quit", "/exit"}:
                break
            if command == "/help":
                print(HELP_TEXT)
                continue
            if command == "/history":
                for turn in store.turns:
                    _print_turn(turn)
                continue
            if command == "/reset":
                controller.reset()
                _print_turn(store.turns[-1])
                continue
            if command == "/tone":
                controller.tone = resolve_tone(argument)
                print(f"Tone set to {controller.tone.value}.")
                continue

            before = len(store)
            if command in intents:
                dispatched = await intents[command]()
            else:
                dispatched = await controller.send(line)

            if not dispatched:
                if command in intents:
                    print("Nothing to refine yet. Ask me something first.")
                continue
            for turn in store.turns[before:]:
                if not turn.is_user:
                    _print_turn(turn)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = ClientSettings()
    parser = argparse.ArgumentParser(description="Chat with SAGA from the terminal.")
    parser.add_argument(
        "--url", default=settings.api_base, help="Relay base URL (default: %(default)s)"
    )
    parser.add_argument(
        "--state-dir",
        type=pathlib.Path,
        default=settings.state_dir,
        help="Where the conversation is kept (default: %(default)s)",
    )
    parser.add_argument(
        "--tone",
        default=settings.tone,
        choices=[tone.value for tone in Tone],
        help="Explanation tone (default: %(default)s)",
    )
    parser.add_argument("--provider", default=settings.provider, help=argparse.SUPPRESS)
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.request_timeout,
        help="Seconds to wait for each reply.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    try:
        asyncio.run(run_chat(args.url, args.state_dir, args.tone, args.provider, args.timeout))
    except KeyboardInterrupt:  # pragma: no cover - manual usage only
        pass


if __name__ == "__main__":  # pragma: no cover
    main()
