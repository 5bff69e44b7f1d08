"""Tests for llmcli.streaming.reducer: delta accumulation and output policy."""

from __future__ import annotations

import json

import pytest

from llmcli.errors import MalformedEventPayloadError
from llmcli.schemas.streaming import CompletionResult, EventType, SSEEvent
from llmcli.streaming.decoder import aiter_sse_events
from llmcli.streaming.reducer import (
    DONE_SENTINEL,
    EventReducer,
    ReducerState,
    extract_fragment,
    stream_completion,
)


# ── Helpers ───────────────────────────────────────────────────


def _delta(content: str | None, **extra) -> SSEEvent:
    delta = {} if content is None else {"content": content}
    payload = {"choices": [{"delta": delta}], **extra}
    return SSEEvent(data=json.dumps(payload))


def _done() -> SSEEvent:
    return SSEEvent(data=DONE_SENTINEL)


async def _agen(items):
    for item in items:
        yield item


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[CompletionResult] = []

    def __call__(self, result: CompletionResult) -> None:
        self.calls.append(result.model_copy(deep=True))


# ── extract_fragment ──────────────────────────────────────────


class TestExtractFragment:
    def test_content_present(self):
        assert extract_fragment({"choices": [{"delta": {"content": "hi"}}]}) == "hi"

    def test_missing_content(self):
        assert extract_fragment({"choices": [{"delta": {"role": "assistant"}}]}) == ""

    def test_null_content(self):
        assert extract_fragment({"choices": [{"delta": {"content": None}}]}) == ""

    def test_missing_delta(self):
        assert extract_fragment({"choices": [{"finish_reason": "stop"}]}) == ""

    def test_missing_choices_raises(self):
        with pytest.raises(KeyError):
            extract_fragment({"id": "x"})

    def test_empty_choices_raises(self):
        with pytest.raises(IndexError):
            extract_fragment({"choices": []})


# ── EventReducer ──────────────────────────────────────────────


class TestEventReducer:
    def test_initial_state(self):
        reducer = EventReducer()
        assert reducer.state is ReducerState.STREAMING
        assert reducer.finished is False
        assert reducer.result.text == ""
        assert reducer.result.data == {}

    def test_accumulates_text_and_keeps_last_payload(self):
        reducer = EventReducer()
        reducer.feed(_delta("Hel", id="a"))
        reducer.feed(_delta("lo", id="b"))
        assert reducer.result.text == "Hello"
        assert reducer.result.data["id"] == "b"

    def test_emits_fragments(self):
        reducer = EventReducer()
        assert reducer.feed(_delta("Hello")) == "Hello"
        assert reducer.feed(_delta(" world")) == " world"

    def test_missing_content_emits_empty_fragment(self):
        reducer = EventReducer()
        assert reducer.feed(_delta(None)) == ""
        assert reducer.result.text == ""

    def test_sentinel_invokes_callback_once(self):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        reducer.feed(_delta("Hello"))
        assert reducer.feed(_done()) is None
        assert reducer.state is ReducerState.DONE
        assert len(recorder.calls) == 1
        assert recorder.calls[0].text == "Hello"

    def test_events_after_sentinel_ignored(self):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        reducer.feed(_delta("a"))
        reducer.feed(_done())
        assert reducer.feed(_delta("b")) is None
        assert reducer.feed(_done()) is None
        assert reducer.result.text == "a"
        assert len(recorder.calls) == 1

    def test_sentinel_with_no_deltas(self):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        reducer.feed(_done())
        assert recorder.calls[0].text == ""
        assert recorder.calls[0].data == {}

    def test_sentinel_must_match_exactly(self):
        reducer = EventReducer()
        with pytest.raises(MalformedEventPayloadError):
            reducer.feed(SSEEvent(data=" [DONE]"))

    def test_reconnect_interval_ignored(self):
        reducer = EventReducer()
        event = SSEEvent(type=EventType.RECONNECT_INTERVAL, value=1000)
        assert reducer.feed(event) is None
        assert reducer.state is ReducerState.STREAMING

    def test_malformed_json_errors(self):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        reducer.feed(_delta("ok"))
        with pytest.raises(MalformedEventPayloadError) as exc_info:
            reducer.feed(SSEEvent(data="{not valid"))
        assert exc_info.value.payload == "{not valid"
        assert reducer.state is ReducerState.ERRORED
        assert reducer.result.text == "ok"

    def test_errored_is_terminal(self):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        with pytest.raises(MalformedEventPayloadError):
            reducer.feed(SSEEvent(data="nope"))
        assert reducer.feed(_delta("late")) is None
        assert reducer.feed(_done()) is None
        assert recorder.calls == []

    def test_payload_without_choices_errors(self):
        reducer = EventReducer()
        with pytest.raises(MalformedEventPayloadError):
            reducer.feed(SSEEvent(data='{"error": "boom"}'))
        assert reducer.state is ReducerState.ERRORED

    @pytest.mark.parametrize("content", [5, ["a"], {"text": "a"}])
    def test_non_string_content_errors(self, content):
        recorder = _Recorder()
        reducer = EventReducer(recorder)
        reducer.feed(_delta("ok"))
        data = json.dumps({"choices": [{"delta": {"content": content}}]})
        with pytest.raises(MalformedEventPayloadError):
            reducer.feed(SSEEvent(data=data))
        assert reducer.state is ReducerState.ERRORED
        assert reducer.result.text == "ok"
        assert reducer.feed(_done()) is None
        assert recorder.calls == []


class TestSuppressionPolicy:
    def test_leading_newline_fragments_suppressed(self):
        reducer = EventReducer()
        assert reducer.feed(_delta("\n")) is None
        assert reducer.feed(_delta("\n")) is None
        assert reducer.feed(_delta("ok")) == "ok"
        assert reducer.result.text == "\n\nok"

    def test_suppression_stops_after_two_emitted(self):
        reducer = EventReducer()
        assert reducer.feed(_delta("a")) == "a"
        assert reducer.feed(_delta("b")) == "b"
        assert reducer.feed(_delta("\n")) == "\n"

    def test_newline_after_one_emitted_still_suppressed(self):
        reducer = EventReducer()
        assert reducer.feed(_delta("a")) == "a"
        assert reducer.feed(_delta("x\ny")) is None
        assert reducer.feed(_delta("b")) == "b"
        assert reducer.feed(_delta("\n")) == "\n"
        assert reducer.result.text == "ax\nyb\n"

    def test_suppressed_fragments_do_not_count(self):
        reducer = EventReducer()
        outputs = [reducer.feed(_delta(t)) for t in ["\n", "\n", "\n", "a", "\n", "b", "\n"]]
        assert outputs == [None, None, None, "a", None, "b", "\n"]

    def test_empty_fragment_counts_as_emitted(self):
        reducer = EventReducer()
        assert reducer.feed(_delta(None)) == ""
        assert reducer.feed(_delta("x")) == "x"
        assert reducer.feed(_delta("\n")) == "\n"


# ── stream_completion ─────────────────────────────────────────


class TestStreamCompletion:
    @pytest.mark.asyncio
    async def test_hello_world_end_to_end(self):
        raw = (
            'data: {"choices":[{"delta":{"content":"Hello"}}]}\n\n'
            'data: {"choices":[{"delta":{"content":" world"}}]}\n\n'
            "data: [DONE]\n\n"
        )
        recorder = _Recorder()
        events = aiter_sse_events(_agen([raw[:30], raw[30:61], raw[61:]]))
        output = [f async for f in stream_completion(events, recorder)]
        assert "".join(output) == "Hello world"
        assert len(recorder.calls) == 1
        assert recorder.calls[0].text == "Hello world"

    @pytest.mark.asyncio
    async def test_leading_newlines_scenario(self):
        recorder = _Recorder()
        events = _agen([_delta("\n"), _delta("\n"), _delta("ok"), _done()])
        output = [f async for f in stream_completion(events, recorder)]
        assert output == ["ok"]
        assert recorder.calls[0].text == "\n\nok"

    @pytest.mark.asyncio
    async def test_output_concatenation_matches_accumulated(self):
        recorder = _Recorder()
        texts = ["The", " quick", " brown", "\n", "fox"]
        events = _agen([*(_delta(t) for t in texts), _done()])
        output = [f async for f in stream_completion(events, recorder)]
        assert "".join(output) == recorder.calls[0].text == "".join(texts)

    @pytest.mark.asyncio
    async def test_stops_consuming_after_sentinel(self):
        consumed: list[SSEEvent] = []

        async def _events():
            for event in [_delta("a"), _done(), _delta("b"), _done()]:
                consumed.append(event)
                yield event

        recorder = _Recorder()
        output = [f async for f in stream_completion(_events(), recorder)]
        assert output == ["a"]
        assert len(consumed) == 2
        assert len(recorder.calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_without_callback(self):
        recorder = _Recorder()
        events = _agen([_delta("a"), SSEEvent(data="{not valid"), _done()])
        output: list[str] = []
        with pytest.raises(MalformedEventPayloadError):
            async for fragment in stream_completion(events, recorder):
                output.append(fragment)
        assert output == ["a"]
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        seen: list[str] = []

        async def _on_complete(result: CompletionResult) -> None:
            seen.append(result.text)

        events = _agen([_delta("hi"), _done()])
        output = [f async for f in stream_completion(events, _on_complete)]
        assert output == ["hi"]
        assert seen == ["hi"]

    @pytest.mark.asyncio
    async def test_stream_without_sentinel_ends_quietly(self):
        recorder = _Recorder()
        events = _agen([_delta("partial")])
        output = [f async for f in stream_completion(events, recorder)]
        assert output == ["partial"]
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_callback_receives_last_payload(self):
        recorder = _Recorder()
        events = _agen([
            _delta("a", id="chatcmpl-1"),
            _delta(None, id="chatcmpl-1", model="gpt-4"),
            _done(),
        ])
        [f async for f in stream_completion(events, recorder)]
        assert recorder.calls[0].data["model"] == "gpt-4"
