"""llmcli schema definitions.

Pydantic v2 models for requests, stream events, completion results and
persisted log records.
"""

from llmcli.schemas.log import LogRecord
from llmcli.schemas.messages import ChatMessage, ChatRequest, Role
from llmcli.schemas.streaming import CompletionResult, EventType, SSEEvent

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "CompletionResult",
    "EventType",
    "LogRecord",
    "Role",
    "SSEEvent",
]
