from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from mirror_gateway.core.types import StreamEvent

logger = logging.getLogger(__name__)

FRAME_BOUNDARY = "\n\n"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

STREAM_FAILED_MESSAGE = "Failed to stream assistant reply."
SAFETY_FALLBACK_MESSAGE = "Safety notice triggered"
GENERIC_ERROR_MESSAGE = "Sorry, something went wrong. Please try again."


def parse_frame(raw_frame: str) -> StreamEvent | None:
    trimmed = raw_frame.strip()
    if not trimmed:
        return None

    kind = "message"
    data_lines: list[str] = []
    for line in trimmed.split("\n"):
        if line.startswith("event:"):
            kind = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())

    payload: dict[str, Any] = {}
    if data_lines:
        try:
            decoded = json.loads("\n".join(data_lines))
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            payload = decoded

    return StreamEvent(kind, payload)


class EventStreamReader:
    """Incremental parser for ``event:/data:`` frames.

    Bytes after the last complete frame boundary are kept and prefixed to the
    next read, so frames (and UTF-8 sequences) may straddle reads.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[StreamEvent]:
        self._buffer += self._decoder.decode(data)

        events: list[StreamEvent] = []
        boundary = self._buffer.find(FRAME_BOUNDARY)
        while boundary != -1:
            raw_frame = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + len(FRAME_BOUNDARY) :]

            event = parse_frame(raw_frame)
            if event is not None:
                events.append(event)
            boundary = self._buffer.find(FRAME_BOUNDARY)

        return events

    @property
    def pending(self) -> str:
        return self._buffer


@dataclass
class ChatMessage:
    role: str
    content: str = ""
    label: str | None = None
    is_streaming: bool = False


class TurnReducer:
    """Folds one turn's events into a single assistant message."""

    def __init__(self) -> None:
        self.message: ChatMessage | None = None
        self.terminated = False

    def apply(self, event: StreamEvent) -> None:
        if self.terminated:
            return

        if event.kind == "start":
            self.message = ChatMessage(role="assistant", is_streaming=True)
        elif event.kind == "delta":
            text = event.payload.get("text")
            if isinstance(text, str) and text:
                message = self._current()
                message.content += text
                message.is_streaming = True
        elif event.kind == "error":
            message = self._current()
            message.content = _text(event.payload.get("message")) or STREAM_FAILED_MESSAGE
            message.label = "Error"
            message.is_streaming = False
            self.terminated = True
        elif event.kind == "done":
            message = self._current()
            reply = _text(event.payload.get("reply"))
            if reply:
                message.content = reply
            message.is_streaming = False
            self.terminated = True

    def apply_fallback(self, payload: dict[str, Any]) -> None:
        message = self._current()
        if payload.get("safe_block"):
            message.content = _text(payload.get("message")) or SAFETY_FALLBACK_MESSAGE
            message.label = "Safety Notice"
        else:
            message.content = (
                _text(payload.get("error"))
                or _text(payload.get("message"))
                or GENERIC_ERROR_MESSAGE
            )
            message.label = "Error"
        message.is_streaming = False
        self.terminated = True

    def fail(self, content: str = GENERIC_ERROR_MESSAGE) -> None:
        message = self._current()
        message.content = content
        message.label = "Error"
        message.is_streaming = False
        self.terminated = True

    def finish(self) -> ChatMessage:
        # Connection ended without a terminal event: keep partial content.
        message = self._current()
        message.is_streaming = False
        return message

    def _current(self) -> ChatMessage:
        if self.message is None:
            self.message = ChatMessage(role="assistant", is_streaming=True)
        return self.message


@dataclass
class Transcript:
    messages: list[ChatMessage] = field(default_factory=list)


class ChatStreamClient:
    def __init__(self, http: httpx.AsyncClient, path: str = "/api/mirror/chat") -> None:
        self._http = http
        self._path = path

    async def send_turn(
        self,
        transcript: Transcript,
        *,
        session_id: str,
        goal: dict[str, Any],
        user_message: str,
    ) -> ChatMessage:
        transcript.messages.append(ChatMessage(role="user", content=user_message))
        reducer = TurnReducer()
        reading = False

        try:
            async with self._http.stream(
                "POST",
                self._path,
                json={
                    "session_id": session_id,
                    "goal": goal,
                    "user_message": user_message,
                },
            ) as response:
                content_type = response.headers.get("content-type", "")

                if EVENT_STREAM_MEDIA_TYPE not in content_type:
                    await response.aread()
                    reducer.apply_fallback(_json_object(response))
                else:
                    reading = True
                    reader = EventStreamReader()
                    async for data in response.aiter_bytes():
                        for event in reader.feed(data):
                            reducer.apply(event)
        except httpx.HTTPError as exc:
            if reading and reducer.message is not None:
                # Dropped mid-stream: finish() keeps the partial reply.
                logger.warning("chat stream for session %s ended early: %s", session_id, exc)
            else:
                logger.warning("chat turn for session %s failed: %s", session_id, exc)
                reducer.fail()

        message = reducer.finish()
        transcript.messages.append(message)
        return message


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        decoded = response.json()
    except ValueError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
