from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .errors import TransportError
from .types import GenerationRequest, TextChunk

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> str: ...

    def stream(self, request: GenerationRequest) -> AsyncIterator[TextChunk]: ...


def normalize_chunk(raw: Any) -> TextChunk:
    """Collapse the provider's chunk shapes into a single ``TextChunk``."""

    if isinstance(raw, TextChunk):
        return raw
    if isinstance(raw, str):
        return TextChunk(raw)
    if isinstance(raw, dict):
        text = raw.get("text")
        return TextChunk(text if isinstance(text, str) else "")

    text = getattr(raw, "text", None)
    return TextChunk(text if isinstance(text, str) else "")


class GeminiGenerator:
    def __init__(
        self,
        client: genai.Client,
        *,
        text_model: str,
        multimodal_model: str,
    ) -> None:
        self._client = client
        self._text_model = text_model
        self._multimodal_model = multimodal_model

    async def generate(self, request: GenerationRequest) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_for(request),
                contents=_contents(request),
                config=_config(request),
            )
        except genai_errors.APIError as exc:
            raise TransportError(
                message=f"upstream returned {exc.code}: {exc.message}",
                status_code=exc.code,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(message=f"upstream unreachable: {exc}") from exc

        return response.text or ""

    async def stream(self, request: GenerationRequest) -> AsyncIterator[TextChunk]:
        try:
            upstream = await self._client.aio.models.generate_content_stream(
                model=self._model_for(request),
                contents=_contents(request),
                config=_config(request),
            )
        except genai_errors.APIError as exc:
            raise TransportError(
                message=f"upstream returned {exc.code}: {exc.message}",
                status_code=exc.code,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(message=f"upstream unreachable: {exc}") from exc

        try:
            async for raw in upstream:
                yield normalize_chunk(raw)
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _model_for(self, request: GenerationRequest) -> str:
        if request.multimodal:
            return self._multimodal_model
        return self._text_model


def _contents(request: GenerationRequest) -> list[genai_types.Content]:
    parts = [genai_types.Part.from_text(text=request.instruction)]
    parts.extend(
        genai_types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
        for part in request.parts
    )
    return [genai_types.Content(role="user", parts=parts)]


def _config(request: GenerationRequest) -> genai_types.GenerateContentConfig:
    if request.schema is None:
        return genai_types.GenerateContentConfig(temperature=request.temperature)

    return genai_types.GenerateContentConfig(
        temperature=request.temperature,
        response_mime_type="application/json",
        response_schema=request.schema.response_schema(),
    )
