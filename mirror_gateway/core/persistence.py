from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Protocol

from .types import TranscriptEntry

logger = logging.getLogger(__name__)


class TranscriptStore(Protocol):
    async def append_turn(
        self,
        session_id: str,
        user_content: str,
        assistant_content: str,
    ) -> str:
        """Commit both sides of one turn as a unit and return its turn id."""
        ...


class InMemoryTranscriptStore:
    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []
        self._lock = asyncio.Lock()

    async def append_turn(
        self,
        session_id: str,
        user_content: str,
        assistant_content: str,
    ) -> str:
        turn_id = uuid.uuid4().hex
        pair = [
            TranscriptEntry(session_id, turn_id, "user", user_content),
            TranscriptEntry(session_id, turn_id, "assistant", assistant_content),
        ]

        async with self._lock:
            self._entries.extend(pair)

        logger.debug("persisted turn %s for session %s", turn_id, session_id)
        return turn_id

    def entries(self, session_id: str | None = None) -> list[TranscriptEntry]:
        if session_id is None:
            return list(self._entries)
        return [entry for entry in self._entries if entry.session_id == session_id]
