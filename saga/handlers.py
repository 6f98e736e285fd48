"""HTTP handlers for the relay gateway."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from saga.dependencies import get_relay_service
from saga.exceptions import ProviderError, ValidationError
from saga.models import ChatRequest, ErrorResponse, ReplyResponse
from saga.prompts import build_prompt
from saga.services.relay_service import RelayService

logger = logging.getLogger(__name__)

INVALID_MESSAGE_ERROR = "Missing or invalid 'message' field"
UPSTREAM_FAILURE_ERROR = "Something went wrong talking to the AI."

LIVENESS_TEXT = "SAGA relay is alive"


def parse_chat_request(body: bytes) -> ChatRequest:
    """Validate a raw request body into a ``ChatRequest``.

    Only ``message`` can fail: loose optional fields are normalized by the model.
    """

    try:
        return ChatRequest.model_validate_json(body)
    except PydanticValidationError as exc:
        raise ValidationError(INVALID_MESSAGE_ERROR) from exc


async def liveness() -> str:
    return LIVENESS_TEXT


async def message_endpoint(
    request: Request,
    relay_service: Annotated[RelayService, Depends(get_relay_service)],
) -> JSONResponse:
    """Assemble the prompt for one chat turn and relay it to the provider."""

    try:
        chat_request = parse_chat_request(await request.body())
    except ValidationError as exc:
        logger.info("Rejected chat request", extra={"reason": exc.message})
        return _error(exc.message, exc.status_code or status.HTTP_400_BAD_REQUEST)

    logger.info(
        "Incoming chat request",
        extra={
            "tone": chat_request.resolved_tone.value,
            "provider": chat_request.provider,
            "history_turns": len(chat_request.history),
            "message_chars": len(chat_request.message),
        },
    )

    try:
        prompt = build_prompt(
            chat_request.message,
            chat_request.history,
            chat_request.resolved_tone,
        )
        reply = await relay_service.complete(prompt)
    except ProviderError as exc:
        logger.error(
            "Provider failure while relaying chat",
            extra={"kind": exc.kind.value, "status_code": exc.status_code},
        )
        return _error(UPSTREAM_FAILURE_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception:
        logger.exception("Unexpected failure while relaying chat")
        return _error(UPSTREAM_FAILURE_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = ReplyResponse(reply=reply.strip())
    return JSONResponse(body.model_dump(), status_code=status.HTTP_200_OK)


def _error(message: str, status_code: int) -> JSONResponse:
    """Render a structured error body."""

    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)
