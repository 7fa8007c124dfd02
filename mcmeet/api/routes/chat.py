from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from mcmeet.core.errors import ValidationAppError
from mcmeet.core.principal import hash_identifier, require_principal
from mcmeet.core.rate_limit import enforce_chat_rate_limit
from mcmeet.schemas.chat import ChatReply, ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


def _invalid_input() -> ValidationAppError:
    return ValidationAppError(
        code="invalid_input",
        message="Message is required",
        details={"field": "message"},
    )


async def _read_chat_request(request: Request) -> ChatRequest:
    """Decode the body as a ChatRequest, mapping any decode/shape error to 400."""
    try:
        raw = await request.json()
    except ValueError as exc:
        raise _invalid_input() from exc

    if not isinstance(raw, dict):
        raise _invalid_input()

    try:
        return ChatRequest.model_validate(raw)
    except ValidationError as exc:
        raise _invalid_input() from exc


@router.post(
    "/chat",
    response_model=ChatResponse,
    dependencies=[Depends(enforce_chat_rate_limit)],
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ChatRequest.model_json_schema()}},
        }
    },
)
async def post_chat_message(request: Request) -> ChatResponse:
    """Accept a chat message from the booking assistant UI.

    The body is read inside the handler so the order is: rate limit (anonymous
    and malformed floods are still counted), then authentication, then input
    validation. The reply is an echo until the assistant backend is connected.

    Raises:
        AuthenticationAppError: 401 when the request has no principal.
        ValidationAppError: 400 when the body is not JSON or ``message`` is
            missing or not text.
    """
    principal_id = require_principal(request)
    payload = await _read_chat_request(request)

    if not isinstance(payload.message, str) or not payload.message.strip():
        raise _invalid_input()

    logger.info(
        "chat.message_received",
        extra={
            "principal_hash": hash_identifier(principal_id),
            "char_count": len(payload.message),
            "has_context": payload.context is not None,
        },
    )

    return ChatResponse(
        data=ChatReply(
            message=f"Echo: {payload.message}",
            context=payload.context,
            timestamp=datetime.now(timezone.utc),
        )
    )
