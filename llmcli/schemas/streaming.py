"""Streaming schemas for server-sent events and assembled completions.

SSEEvent is what the stream decoder produces; CompletionResult is the
accumulated response the event reducer hands to the completion callback.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class EventType(StrEnum):
    """Kind of unit produced by the SSE decoder."""

    EVENT = "event"
    RECONNECT_INTERVAL = "reconnect-interval"


class SSEEvent(BaseModel):
    """A single parsed server-sent event."""

    type: EventType = Field(default=EventType.EVENT, description="Event kind")
    event: str | None = Field(default=None, description="Value of the 'event:' field")
    id: str | None = Field(default=None, description="Value of the last 'id:' field")
    data: str = Field(default="", description="Joined 'data:' lines")
    value: int | None = Field(
        default=None, description="Reconnect interval in ms (reconnect-interval only)",
    )


class CompletionResult(BaseModel):
    """Full response text plus the last raw JSON object received."""

    text: str = Field(default="", description="Concatenation of all text fragments")
    data: dict[str, Any] = Field(
        default_factory=dict, description="Most recently parsed response object",
    )
