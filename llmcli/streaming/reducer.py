"""Reduction of streamed chat-completion events into text output.

Each SSE payload is a JSON delta carrying a fragment of the response.
The reducer appends fragments to the accumulated response, decides which
fragments reach the terminal, and finalizes the response when the
``[DONE]`` sentinel arrives.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from enum import StrEnum

from llmcli.errors import MalformedEventPayloadError
from llmcli.schemas.streaming import CompletionResult, EventType, SSEEvent

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# Fragments with a newline are held back until this many have been shown
_SUPPRESS_NEWLINES_BEFORE = 2

CompletionCallback = Callable[[CompletionResult], Awaitable[None] | None]


class ReducerState(StrEnum):
    """Lifecycle of an EventReducer."""

    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"


def extract_fragment(payload: dict) -> str:
    """Return ``choices[0].delta.content``, or "" when the delta has none.

    Raises:
        KeyError, IndexError, TypeError: If ``choices[0]`` is missing.
    """
    delta = payload["choices"][0].get("delta") or {}
    return delta.get("content") or ""


class EventReducer:
    """Stateful consumer of SSE events for one streamed completion.

    Owns the accumulated response. The completion callback receives it
    exactly once, when the sentinel arrives; after that, and after a
    malformed payload, the reducer ignores further events.
    """

    def __init__(self, on_complete: CompletionCallback | None = None) -> None:
        self._on_complete = on_complete
        self._result = CompletionResult()
        self._emitted = 0
        self._state = ReducerState.STREAMING
        self._pending_callback: Awaitable[None] | None = None

    @property
    def state(self) -> ReducerState:
        return self._state

    @property
    def finished(self) -> bool:
        """True once the reducer reached a terminal state."""
        return self._state is not ReducerState.STREAMING

    @property
    def result(self) -> CompletionResult:
        """The response accumulated so far."""
        return self._result

    def feed(self, event: SSEEvent) -> str | None:
        """Apply one event; return the fragment to display, if any.

        Raises:
            MalformedEventPayloadError: If a non-sentinel payload is not a
                completion delta. The reducer is then ERRORED.
        """
        if self.finished or event.type is not EventType.EVENT:
            return None

        if event.data == DONE_SENTINEL:
            self._finish()
            return None

        try:
            payload = json.loads(event.data)
            fragment = extract_fragment(payload)
        except json.JSONDecodeError as exc:
            self._state = ReducerState.ERRORED
            raise MalformedEventPayloadError(event.data) from exc
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            self._state = ReducerState.ERRORED
            raise MalformedEventPayloadError(event.data, "no choices[0]") from exc
        if not isinstance(fragment, str):
            self._state = ReducerState.ERRORED
            raise MalformedEventPayloadError(event.data, "content is not a string")

        self._result.text += fragment
        self._result.data = payload

        if self._emitted < _SUPPRESS_NEWLINES_BEFORE and "\n" in fragment:
            return None
        self._emitted += 1
        return fragment

    def _finish(self) -> None:
        self._state = ReducerState.DONE
        logger.debug(
            "Stream finished: %d chars, %d fragments shown",
            len(self._result.text), self._emitted,
        )
        if self._on_complete is None:
            return
        outcome = self._on_complete(self._result)
        if asyncio.iscoroutine(outcome):
            self._pending_callback = outcome

    async def drain_callback(self) -> None:
        """Await a coroutine returned by the completion callback, if any."""
        if self._pending_callback is not None:
            pending, self._pending_callback = self._pending_callback, None
            await pending


async def stream_completion(
    events: AsyncIterable[SSEEvent],
    on_complete: CompletionCallback | None = None,
) -> AsyncIterator[str]:
    """Yield display fragments from an event stream until the sentinel.

    Ends normally after ``[DONE]`` without consuming further events, or
    raises MalformedEventPayloadError on the first bad payload.
    """
    reducer = EventReducer(on_complete)
    async for event in events:
        fragment = reducer.feed(event)
        if reducer.finished:
            await reducer.drain_callback()
            return
        if fragment is not None:
            yield fragment
    logger.warning("Stream ended without a %s event", DONE_SENTINEL)
