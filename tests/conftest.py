from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from mirror_gateway.config import Settings
from mirror_gateway.core.persistence import InMemoryTranscriptStore
from mirror_gateway.core.types import BinaryPart, GenerationRequest, TextChunk
from mirror_gateway.main import create_app

VALID_CHAT_OUTPUT = {
    "reply": "I remember this week.",
    "gentle_challenge_question": "What is one thing you can move today?",
    "narrative_rewrite": "I am someone who starts small.",
    "next_step": {"suggest_photo_anchor": True, "suggest_action_collapse": False},
}


class ScriptedGenerator:
    """Generator double: replays scripted responses and stream chunks."""

    def __init__(
        self,
        responses: list[Any] | None = None,
        chunks: list[str] | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.stream_error = stream_error
        self.calls: list[GenerationRequest] = []
        self.stream_closed = False

    async def generate(self, request: GenerationRequest) -> str:
        self.calls.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return json.dumps(item)
        return item

    async def stream(self, request: GenerationRequest):
        self.calls.append(request)
        try:
            for chunk in self.chunks:
                yield TextChunk(chunk)
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.stream_closed = True


class FailingStore(InMemoryTranscriptStore):
    async def append_turn(self, session_id, user_content, assistant_content):
        raise RuntimeError("database is down")


class StaticImageFetcher:
    def __init__(self) -> None:
        self.urls: list[str] = []

    async def fetch(self, url: str) -> BinaryPart:
        self.urls.append(url)
        return BinaryPart(mime_type="image/png", data=b"\x89PNG fake")


@pytest.fixture()
def settings() -> Settings:
    return Settings(gemini_api_key=None, max_attempts=3, log_level="WARNING")


@pytest.fixture()
def store() -> InMemoryTranscriptStore:
    return InMemoryTranscriptStore()


@pytest.fixture()
def fetcher() -> StaticImageFetcher:
    return StaticImageFetcher()


@pytest.fixture()
def make_client(settings, store, fetcher):
    def _make(generator=None, **overrides) -> TestClient:
        app = create_app(
            overrides.pop("settings", settings),
            generator=generator,
            store=overrides.pop("store", store),
            fetcher=overrides.pop("fetcher", fetcher),
            **overrides,
        )
        return TestClient(app)

    return _make


@pytest.fixture()
def chat_payload() -> dict[str, Any]:
    return {
        "session_id": "session-1",
        "goal": {"title": "Run a 10k", "description": "By spring"},
        "user_message": "I skipped my run again.",
    }
