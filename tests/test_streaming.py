from __future__ import annotations

import logging

import pytest
from conftest import FailingStore, ScriptedGenerator

from mirror_gateway.core.persistence import InMemoryTranscriptStore
from mirror_gateway.core.streaming import (
    EMPTY_REPLY_MESSAGE,
    PERSIST_FAILED_MESSAGE,
    STREAM_FAILED_MESSAGE,
    StreamingSessionController,
)
from mirror_gateway.core.types import GenerationRequest, StreamEvent

pytestmark = pytest.mark.asyncio

REQUEST = GenerationRequest(task="future_self_stream", instruction="Reply warmly.")


async def _collect(generator, store=None):
    store = store if store is not None else InMemoryTranscriptStore()
    controller = StreamingSessionController(generator, store)
    events = [
        event
        async for event in controller.events(
            REQUEST,
            session_id="session-1",
            user_message="I skipped my run.",
        )
    ]
    return events, store


def _deltas(events: list[StreamEvent]) -> list[str]:
    return [event.payload["text"] for event in events if event.kind == "delta"]


async def test_snapshot_chunks_are_reduced_to_deltas():
    generator = ScriptedGenerator(chunks=["Hello", "Hello world"])

    events, store = await _collect(generator)

    assert events[0] == StreamEvent.start()
    assert _deltas(events) == ["Hello", " world"]
    assert events[-1] == StreamEvent.done("Hello world")


async def test_incremental_chunks_pass_through():
    generator = ScriptedGenerator(chunks=["Hel", "lo wor", "ld"])

    events, store = await _collect(generator)

    assert _deltas(events) == ["Hel", "lo wor", "ld"]
    assert events[-1] == StreamEvent.done("Hello world")


async def test_completed_turn_is_persisted_once_as_a_pair():
    generator = ScriptedGenerator(chunks=["  Keep going.  "])

    events, store = await _collect(generator)

    entries = store.entries("session-1")
    assert [(entry.role, entry.content) for entry in entries] == [
        ("user", "I skipped my run."),
        ("assistant", "Keep going."),
    ]
    assert entries[0].turn_id == entries[1].turn_id
    assert events[-1] == StreamEvent.done("Keep going.")
    assert generator.stream_closed is True


async def test_upstream_failure_mid_stream_becomes_error_event():
    generator = ScriptedGenerator(chunks=["Hel"], stream_error=ConnectionError("reset"))

    events, store = await _collect(generator)

    assert [event.kind for event in events] == ["start", "delta", "error"]
    assert events[1] == StreamEvent.delta("Hel")
    assert events[2] == StreamEvent.error(STREAM_FAILED_MESSAGE)
    assert store.entries() == []
    assert generator.stream_closed is True


async def test_upstream_failure_before_first_chunk_becomes_error_event():
    generator = ScriptedGenerator(stream_error=TimeoutError("upstream stalled"))

    events, store = await _collect(generator)

    assert [event.kind for event in events] == ["start", "error"]
    assert store.entries() == []


async def test_empty_reply_emits_error_and_persists_nothing():
    generator = ScriptedGenerator(chunks=["", "", ""])

    events, store = await _collect(generator)

    assert events == [StreamEvent.start(), StreamEvent.error(EMPTY_REPLY_MESSAGE)]
    assert store.entries() == []


async def test_whitespace_only_reply_is_treated_as_empty():
    generator = ScriptedGenerator(chunks=["  ", "\n"])

    events, store = await _collect(generator)

    assert events[-1] == StreamEvent.error(EMPTY_REPLY_MESSAGE)
    assert store.entries() == []


async def test_persistence_failure_is_reported_in_band():
    generator = ScriptedGenerator(chunks=["Hello"])
    store = FailingStore()

    events, _ = await _collect(generator, store)

    assert [event.kind for event in events] == ["start", "delta", "error"]
    assert events[-1] == StreamEvent.error(PERSIST_FAILED_MESSAGE)
    assert store.entries() == []


async def test_consumer_disconnect_closes_upstream_and_skips_persistence():
    generator = ScriptedGenerator(chunks=["Hel", "lo", " there"])
    store = InMemoryTranscriptStore()
    controller = StreamingSessionController(generator, store)

    frames = controller.frames(REQUEST, session_id="session-1", user_message="hi")
    first = await frames.__anext__()
    second = await frames.__anext__()
    await frames.aclose()

    assert first == b'event: start\ndata: {"ok": true}\n\n'
    assert second == b'event: delta\ndata: {"text": "Hel"}\n\n'
    assert generator.stream_closed is True
    assert store.entries() == []


async def test_stream_failure_is_logged_with_its_cause(caplog):
    generator = ScriptedGenerator(chunks=["Hel"], stream_error=ConnectionError("reset"))

    with caplog.at_level(logging.WARNING, logger="mirror_gateway.core.streaming"):
        await _collect(generator)

    [record] = [r for r in caplog.records if r.name == "mirror_gateway.core.streaming"]
    assert record.levelno == logging.WARNING
    assert record.exc_info is not None
    assert isinstance(record.exc_info[1], ConnectionError)
