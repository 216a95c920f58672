"""Schemas for the plain chat endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Request body for POST /chat and POST /chat/stream: the conversation so far."""

    messages: list[ChatMessage] = Field(..., min_length=1, description="Message history, oldest first.")


class ChatResponse(BaseModel):
    """Response for POST /chat (buffered mode)."""

    answer: str = Field(..., description="Model reply to the last message.")
    messages: list[ChatMessage] = Field(default_factory=list, description="History including the reply.")
    error: str | None = Field(None, description="Set when the model call failed.")
