"""Pydantic models shared across the relay and its client."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Tone(str, Enum):
    """Canonical instruction profiles for the persona's register."""

    FRIENDLY = "friendly"
    TUTOR = "tutor"
    PROFESSIONAL = "professional"


# Older clients sent these values; they are accepted and folded onto the canonical set.
TONE_ALIASES: dict[str, Tone] = {
    "pro": Tone.PROFESSIONAL,
    "concise": Tone.PROFESSIONAL,
    "study_buddy": Tone.TUTOR,
    "affirming": Tone.FRIENDLY,
}


def resolve_tone(value: str | Tone | None) -> Tone:
    """Return the ``Tone`` for a raw value, defaulting to friendly."""

    if isinstance(value, Tone):
        return value
    if not isinstance(value, str):
        return Tone.FRIENDLY

    key = value.strip().lower()
    try:
        return Tone(key)
    except ValueError:
        return TONE_ALIASES.get(key, Tone.FRIENDLY)


class Turn(BaseModel):
    """One message in the conversation.

    ``role`` is kept as a plain string so that histories carrying roles
    other than user/assistant still parse and render.
    """

    model_config = ConfigDict(frozen=True)

    role: str
    content: str = ""

    @classmethod
    def user(cls, content: str) -> Turn:
        return cls(role=Role.USER.value, content=content)

    @classmethod
    def assistant(cls, content: str) -> Turn:
        return cls(role=Role.ASSISTANT.value, content=content)

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER.value


class ChatRequest(BaseModel):
    """Inbound ``POST /api/message`` payload."""

    message: str = Field(min_length=1, description="Latest user message.")
    provider: str | None = Field(default=None, description="Accepted but not branched on.")
    tone: str | None = None
    style: str | None = Field(default=None, description="Deprecated name for tone.")
    history: list[Turn] = Field(default_factory=list)

    @field_validator("provider", "tone", "style", mode="before")
    @classmethod
    def _ignore_non_string(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("history", mode="before")
    @classmethod
    def _normalize_history(cls, value: Any) -> list[dict[str, str]]:
        """Coerce loose history entries into renderable turns."""

        if not isinstance(value, list):
            return []
        return [_normalize_turn(item) for item in value if isinstance(item, dict)]

    @property
    def resolved_tone(self) -> Tone:
        return resolve_tone(self.tone if self.tone is not None else self.style)


class ReplyResponse(BaseModel):
    """Successful relay result."""

    reply: str


class ErrorResponse(BaseModel):
    """Failed relay result."""

    error: str


def _normalize_turn(item: dict[str, Any]) -> dict[str, str]:
    role = item.get("role")
    content = item.get("content")
    return {
        "role": role if isinstance(role, str) else "",
        "content": "" if content is None else str(content),
    }
