from __future__ import annotations

from mirror_gateway.client.reader import (
    SAFETY_FALLBACK_MESSAGE,
    STREAM_FAILED_MESSAGE,
    EventStreamReader,
    TurnReducer,
    parse_frame,
)
from mirror_gateway.core.streaming import DeltaCursor, encode_event
from mirror_gateway.core.types import StreamEvent

TURN_EVENTS = [
    StreamEvent.start(),
    StreamEvent.delta("Hel"),
    StreamEvent.delta("lo wörld ☕"),
    StreamEvent.done("Hello wörld ☕"),
]
TURN_BYTES = b"".join(encode_event(event) for event in TURN_EVENTS)


def _fold(events: list[StreamEvent]) -> TurnReducer:
    reducer = TurnReducer()
    for event in events:
        reducer.apply(event)
    return reducer


def test_single_read_parses_every_frame():
    events = EventStreamReader().feed(TURN_BYTES)

    assert events == TURN_EVENTS


def test_split_at_any_offset_yields_identical_events():
    for offset in range(len(TURN_BYTES) + 1):
        reader = EventStreamReader()
        events = reader.feed(TURN_BYTES[:offset]) + reader.feed(TURN_BYTES[offset:])

        assert events == TURN_EVENTS, f"split at byte {offset}"
        assert reader.pending == ""


def test_byte_at_a_time_feed():
    reader = EventStreamReader()
    events: list[StreamEvent] = []
    for index in range(len(TURN_BYTES)):
        events.extend(reader.feed(TURN_BYTES[index : index + 1]))

    assert events == TURN_EVENTS


def test_incomplete_frame_is_retained_until_boundary():
    reader = EventStreamReader()

    assert reader.feed(b'event: delta\ndata: {"text": "a"}\n') == []
    assert reader.pending == 'event: delta\ndata: {"text": "a"}\n'
    assert reader.feed(b"\n") == [StreamEvent.delta("a")]


def test_frame_without_event_line_defaults_to_message():
    assert parse_frame('data: {"x": 1}') == StreamEvent("message", {"x": 1})


def test_unparseable_data_becomes_empty_payload():
    assert parse_frame("event: delta\ndata: {not json") == StreamEvent("delta", {})
    assert parse_frame('event: delta\ndata: ["list"]') == StreamEvent("delta", {})
    assert parse_frame("   ") is None


def test_done_reply_overrides_locally_summed_deltas():
    duplicated = [
        StreamEvent.start(),
        StreamEvent.delta("Hello"),
        StreamEvent.delta(" world"),
        StreamEvent.delta(" world"),
        StreamEvent.done("Hello world"),
    ]

    message = _fold(duplicated).finish()

    assert message.content == "Hello world"
    assert message.is_streaming is False
    assert message.label is None


def test_done_overrides_when_a_chunk_was_dropped():
    dropped = [
        StreamEvent.start(),
        StreamEvent.delta("Hello"),
        StreamEvent.done("Hello world"),
    ]

    message = _fold(dropped).finish()

    assert message.content == "Hello world"


def test_deltas_append_while_streaming():
    reducer = _fold([StreamEvent.start(), StreamEvent.delta("Hel"), StreamEvent.delta("lo")])

    assert reducer.message is not None
    assert reducer.message.content == "Hello"
    assert reducer.message.is_streaming is True


def test_error_replaces_content_and_is_terminal():
    reducer = _fold(
        [
            StreamEvent.start(),
            StreamEvent.delta("Hel"),
            StreamEvent.error("Upstream went away."),
            StreamEvent.delta("late"),
        ]
    )

    message = reducer.finish()
    assert message.content == "Upstream went away."
    assert message.label == "Error"
    assert message.is_streaming is False


def test_error_without_message_uses_default_text():
    message = _fold([StreamEvent.start(), StreamEvent("error", {})]).finish()

    assert message.content == STREAM_FAILED_MESSAGE


def test_connection_end_without_terminal_keeps_partial_content():
    reducer = _fold([StreamEvent.start(), StreamEvent.delta("Hel")])

    message = reducer.finish()

    assert message.content == "Hel"
    assert message.is_streaming is False
    assert message.label is None
    assert reducer.terminated is False


def test_fallback_safety_block_and_error():
    safety = TurnReducer()
    safety.apply_fallback({"safe_block": True, "message": "Please reach out."})
    bare_safety = TurnReducer()
    bare_safety.apply_fallback({"safe_block": True})
    error = TurnReducer()
    error.apply_fallback({"error": "Unauthorized"})

    assert (safety.message.content, safety.message.label) == ("Please reach out.", "Safety Notice")
    assert bare_safety.message.content == SAFETY_FALLBACK_MESSAGE
    assert (error.message.content, error.message.label) == ("Unauthorized", "Error")
    assert error.message.is_streaming is False


def test_delta_cursor_handles_reset_by_appending():
    cursor = DeltaCursor()

    assert cursor.advance("Hello") == "Hello"
    assert cursor.advance("Hello") == ""
    assert cursor.advance("abc") == "abc"
    assert cursor.text == "Helloabc"


def test_encode_event_keeps_unicode():
    frame = encode_event(StreamEvent.delta("café ☕"))

    assert frame == 'event: delta\ndata: {"text": "café ☕"}\n\n'.encode("utf-8")
