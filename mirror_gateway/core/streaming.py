from __future__ import annotations

import json
import logging
from typing import AsyncIterator

from .errors import EmptyReplyError, StreamRuntimeError
from .generation import TextGenerator
from .persistence import TranscriptStore
from .types import GenerationRequest, StreamEvent

logger = logging.getLogger(__name__)

STREAM_FAILED_MESSAGE = "Failed to stream assistant reply."
EMPTY_REPLY_MESSAGE = "The assistant returned an empty reply. Please try again."
PERSIST_FAILED_MESSAGE = "Failed to save this conversation turn."


class DeltaCursor:
    """Longest prefix already emitted for the current turn.

    Accepts cumulative snapshots and incremental fragments alike: a chunk
    that starts with the cursor is a snapshot, anything else is appended.
    """

    __slots__ = ("text",)

    def __init__(self) -> None:
        self.text = ""

    def advance(self, chunk: str) -> str:
        if chunk.startswith(self.text):
            delta = chunk[len(self.text) :]
            self.text = chunk
        else:
            delta = chunk
            self.text += chunk
        return delta


def encode_event(event: StreamEvent) -> bytes:
    data = json.dumps(event.payload, ensure_ascii=False)
    return f"event: {event.kind}\ndata: {data}\n\n".encode("utf-8")


class StreamingSessionController:
    def __init__(self, generator: TextGenerator, store: TranscriptStore) -> None:
        self._generator = generator
        self._store = store

    async def events(
        self,
        request: GenerationRequest,
        *,
        session_id: str,
        user_message: str,
    ) -> AsyncIterator[StreamEvent]:
        cursor = DeltaCursor()
        source = self._generator.stream(request)

        try:
            yield StreamEvent.start()

            try:
                async for chunk in source:
                    delta = cursor.advance(chunk.text)
                    if delta:
                        yield StreamEvent.delta(delta)
            except Exception as exc:
                raise StreamRuntimeError(STREAM_FAILED_MESSAGE) from exc

            reply = cursor.text.strip()
            if not reply:
                raise EmptyReplyError(EMPTY_REPLY_MESSAGE)

            try:
                await self._store.append_turn(session_id, user_message, reply)
            except Exception as exc:
                raise StreamRuntimeError(PERSIST_FAILED_MESSAGE) from exc

            yield StreamEvent.done(reply)

        except StreamRuntimeError as exc:
            logger.warning("[%s] %s", request.task, exc, exc_info=exc.__cause__)
            yield StreamEvent.error(str(exc))

        finally:
            await _close(source)

    async def frames(
        self,
        request: GenerationRequest,
        *,
        session_id: str,
        user_message: str,
    ) -> AsyncIterator[bytes]:
        events = self.events(request, session_id=session_id, user_message=user_message)
        try:
            async for event in events:
                yield encode_event(event)
        finally:
            await events.aclose()


async def _close(source: AsyncIterator[object]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.exception("error while closing upstream stream")
