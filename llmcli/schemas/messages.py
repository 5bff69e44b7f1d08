"""Request schemas for the chat-completion endpoint."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class Role(StrEnum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A single {role, content} pair in the request's message list."""

    role: Role = Field(description="Who authored the message")
    content: str = Field(description="Message text")


class ChatRequest(BaseModel):
    """Body of a POST to the chat-completion endpoint."""

    model: str = Field(description="Model identifier, e.g. 'gpt-3.5-turbo'")
    messages: list[ChatMessage] = Field(
        default_factory=list, description="Ordered conversation messages",
    )
    stream: bool = Field(default=False, description="Request an SSE response")

    def to_payload(self) -> dict:
        """Return the JSON-ready request body."""
        return self.model_dump(mode="json")
