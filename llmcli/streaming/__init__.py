"""Streaming protocol handling: SSE decoding and completion reduction."""

from llmcli.streaming.decoder import SSEDecoder, aiter_sse_events, aiter_text
from llmcli.streaming.reducer import (
    DONE_SENTINEL,
    EventReducer,
    ReducerState,
    stream_completion,
)

__all__ = [
    "DONE_SENTINEL",
    "EventReducer",
    "ReducerState",
    "SSEDecoder",
    "aiter_sse_events",
    "aiter_text",
    "stream_completion",
]
