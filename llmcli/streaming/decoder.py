"""Server-sent event decoding for chunked HTTP response bodies.

Network reads split the event stream at arbitrary points: inside a
multi-byte character, inside a line, or between the CR and LF of a line
ending. The decoder keeps whatever it cannot interpret yet and only hands
out an event once the blank line that terminates it has arrived.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import AsyncIterable, AsyncIterator

from llmcli.errors import StreamBufferOverflowError
from llmcli.schemas.streaming import EventType, SSEEvent

logger = logging.getLogger(__name__)

_BOM = "\ufeff"
_LINE_END_RE = re.compile(r"[\r\n]")


class SSEDecoder:
    """Incremental, push-style parser for the SSE text format.

    Feed it decoded text in whatever pieces the network delivers; each
    call returns the events completed by that piece, in arrival order.

    Args:
        max_buffer_size: Optional cap, in characters, on pending state
            (unterminated line plus collected data lines). None keeps
            buffering without limit.
    """

    def __init__(self, max_buffer_size: int | None = None) -> None:
        self._max_buffer_size = max_buffer_size
        self.reset()

    def reset(self) -> None:
        """Drop all partial state, as if no input had been seen."""
        self._buffer = ""
        self._at_start = True
        self._event_name: str | None = None
        self._data_lines: list[str] = []
        self._last_id: str | None = None

    def feed(self, text: str) -> list[SSEEvent]:
        """Consume a text fragment and return the events it completed."""
        if self._at_start and text:
            if text.startswith(_BOM):
                text = text[1:]
            self._at_start = False

        buf = self._buffer + text
        events: list[SSEEvent] = []
        pos = 0
        while True:
            match = _LINE_END_RE.search(buf, pos)
            if match is None:
                break
            idx = match.start()
            if buf[idx] == "\r":
                # A trailing CR may be the first half of CRLF
                if idx + 1 == len(buf):
                    break
                end = idx + 2 if buf[idx + 1] == "\n" else idx + 1
            else:
                end = idx + 1
            event = self._process_line(buf[pos:idx])
            if event is not None:
                events.append(event)
            pos = end

        self._buffer = buf[pos:]
        self._check_size()
        return events

    def close(self) -> list[SSEEvent]:
        """Signal end of input and return any event a held CR completes.

        Anything still unterminated afterwards is discarded.
        """
        events: list[SSEEvent] = []
        if self._buffer.endswith("\r"):
            event = self._process_line(self._buffer[:-1])
            if event is not None:
                events.append(event)
            self._buffer = ""
        if self._buffer or self._data_lines:
            logger.debug(
                "Discarding unterminated SSE data at end of stream (%d chars)",
                len(self._buffer) + sum(len(line) for line in self._data_lines),
            )
        self.reset()
        return events

    # ── Internals ────────────────────────────────────────────────

    def _process_line(self, line: str) -> SSEEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data_lines.append(value)
        elif name == "event":
            self._event_name = value
        elif name == "id":
            if "\0" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isascii() and value.isdigit():
                return SSEEvent(type=EventType.RECONNECT_INTERVAL, value=int(value))
        # Unknown fields are ignored
        return None

    def _dispatch(self) -> SSEEvent | None:
        if not self._data_lines:
            self._event_name = None
            return None
        event = SSEEvent(
            event=self._event_name,
            id=self._last_id,
            data="\n".join(self._data_lines),
        )
        self._event_name = None
        self._data_lines = []
        return event

    def _check_size(self) -> None:
        if self._max_buffer_size is None:
            return
        pending = len(self._buffer) + sum(len(line) for line in self._data_lines)
        if pending > self._max_buffer_size:
            raise StreamBufferOverflowError(
                f"Pending SSE data ({pending} chars) exceeds "
                f"limit of {self._max_buffer_size}"
            )


async def aiter_text(
    chunks: AsyncIterable[bytes],
    encoding: str = "utf-8",
) -> AsyncIterator[str]:
    """Decode byte chunks to text, keeping split multi-byte characters intact."""
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    async for chunk in chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


async def aiter_sse_events(
    fragments: AsyncIterable[str],
    *,
    max_buffer_size: int | None = None,
) -> AsyncIterator[SSEEvent]:
    """Yield SSE events parsed from an async stream of text fragments."""
    decoder = SSEDecoder(max_buffer_size=max_buffer_size)
    async for fragment in fragments:
        for event in decoder.feed(fragment):
            yield event
    for event in decoder.close():
        yield event
