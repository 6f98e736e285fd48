"""Prompt assembly for the SAGA persona."""

from __future__ import annotations

from typing import Iterable

from saga.models import Tone, Turn, resolve_tone

USER_LABEL = "User"
ASSISTANT_LABEL = "SAGA"

PERSONA = "You are SAGA, a texting-style AI that explains anything in clear, human language."

TONE_INSTRUCTIONS: dict[Tone, str] = {
    Tone.FRIENDLY: (
        "Explain like a friendly, supportive peer using simple language and relatable examples."
    ),
    Tone.TUTOR: (
        "Explain like a patient tutor. Use clear steps, gentle guidance, "
        "and check for understanding."
    ),
    Tone.PROFESSIONAL: (
        "Explain in a concise, professional tone suitable for a university or workplace "
        "audience, but still clear and approachable."
    ),
}

STYLE_RULES = (
    "- Be warm, encouraging, and conversational.",
    "- Avoid heavy jargon unless you immediately explain it.",
    "- Prefer short paragraphs and bullet points over long walls of text.",
    "- Assume the user is smart, just unfamiliar with the topic.",
    "- Use analogies and real-world examples whenever helpful.",
    "- At the end, you may offer a small follow-up like:\n"
    '  "If you want, I can simplify this more or give another example."',
)

LENGTH_DIRECTIVE = (
    "Now answer as SAGA. Keep the reply roughly 4-8 sentences unless the user "
    "clearly asked for a long, detailed breakdown."
)


def render_history(history: Iterable[Turn]) -> str:
    """Render turns as ``Speaker: content`` lines."""

    return "\n".join(
        f"{USER_LABEL if turn.is_user else ASSISTANT_LABEL}: {turn.content}"
        for turn in history
    )


def build_prompt(
    message: str,
    history: Iterable[Turn] = (),
    tone: str | Tone | None = None,
) -> str:
    """Compose the single task prompt submitted to the provider."""

    sections = [
        PERSONA,
        f"Tone style:\n{TONE_INSTRUCTIONS[resolve_tone(tone)]}",
        "General rules:\n" + "\n".join(STYLE_RULES),
        f"Conversation so far:\n{render_history(history)}",
        f"User's latest message:\n{message}",
        LENGTH_DIRECTIVE,
    ]
    return "\n\n".join(sections) + "\n"
