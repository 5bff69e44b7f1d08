"""Schema for a persisted prompt/response exchange."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_PROVIDER = "OpenAI ChatGPT"


class LogRecord(BaseModel):
    """One row of the local log database."""

    id: int | None = Field(default=None, description="Row id, set once stored")
    provider: str = Field(default=DEFAULT_PROVIDER, description="API provider label")
    system: str = Field(default="", description="System prompt sent")
    prompt: str = Field(description="Expanded user prompt sent")
    response: str = Field(default="", description="Final response text")
    model: str = Field(description="Model identifier used")
    data: dict[str, Any] = Field(
        default_factory=dict, description="Raw final response object",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the exchange completed",
    )
