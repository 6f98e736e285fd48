"""Client-resident conversation state and its durable storage."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from saga.models import Role, Turn

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "saga.conversation"

GREETING = (
    "Hey, I'm SAGA 👋 Text me any topic and I'll break it down for you"
    ": clearly, simply, and conversationally."
)


class FileStorage:
    """Named-entry key/value storage backed by one JSON file per entry."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory).expanduser()

    def _path(self, name: str) -> Path:
        return self._directory / f"{name}.json"

    def get_item(self, name: str) -> str | None:
        """Return the entry, or None when absent.

        Raises ``UnicodeDecodeError`` for an entry that is not valid UTF-8.
        """

        try:
            data = self._path(name).read_bytes()
        except FileNotFoundError:
            return None
        return data.decode("utf-8")

    def set_item(self, name: str, value: str) -> None:
        """Replace the entry in one step; readers never see a partial write."""

        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, self._path(name))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


class ConversationSnapshot(BaseModel):
    """Serialized form of a conversation."""

    version: int = 0
    turns: list[Turn] = Field(min_length=1)


def default_turns() -> tuple[Turn, ...]:
    return (Turn.assistant(GREETING),)


class ConversationStore:
    """Owns the ordered turn sequence and rewrites it after every mutation."""

    def __init__(self, storage: FileStorage, key: str = DEFAULT_STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key
        self._turns: tuple[Turn, ...] = default_turns()
        self._version = 0

    @property
    def turns(self) -> tuple[Turn, ...]:
        return self._turns

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._turns)

    def has_assistant_turn(self) -> bool:
        return any(turn.role == Role.ASSISTANT.value for turn in self._turns)

    def load(self) -> tuple[Turn, ...]:
        """Restore the persisted conversation, falling back to the greeting."""

        try:
            raw = self._storage.get_item(self._key)
        except UnicodeDecodeError:
            return self._discard()
        except OSError:
            logger.warning(
                "Conversation state could not be read", extra={"key": self._key}, exc_info=True
            )
            return self._start_fresh()

        if raw is None:
            return self._start_fresh()

        try:
            snapshot = ConversationSnapshot.model_validate_json(raw)
        except ValidationError:
            return self._discard()

        self._turns = tuple(snapshot.turns)
        self._version = snapshot.version
        return self._turns

    def append(self, turn: Turn) -> None:
        self._turns = (*self._turns, turn)
        self._commit()

    def reset(self) -> None:
        self._turns = default_turns()
        self._commit()

    def dump(self) -> list[dict[str, Any]]:
        """History in the shape the gateway expects."""

        return [turn.model_dump() for turn in self._turns]

    def _start_fresh(self) -> tuple[Turn, ...]:
        self._turns, self._version = default_turns(), 0
        return self._turns

    def _discard(self) -> tuple[Turn, ...]:
        logger.warning("Discarding unreadable conversation state", extra={"key": self._key})
        self._storage.remove_item(self._key)
        return self._start_fresh()

    def _commit(self) -> None:
        self._version += 1
        snapshot = ConversationSnapshot(version=self._version, turns=list(self._turns))
        self._storage.set_item(self._key, snapshot.model_dump_json())
        logger.debug(
            "Conversation persisted",
            extra={"key": self._key, "version": self._version, "turns": len(self._turns)},
        )
