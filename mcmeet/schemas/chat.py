"""Pydantic schemas for the chat endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Incoming chat message."""

    message: Any = Field(
        None, description="User message text. Must be a non-empty string."
    )
    context: Any = Field(
        None, description="Opaque client-side conversation context, echoed back."
    )


class ChatReply(BaseModel):
    message: str
    context: Any = None
    timestamp: datetime


class ChatResponse(BaseModel):
    """Envelope returned by POST /v1/chat."""

    success: bool = True
    data: ChatReply
