from __future__ import annotations

from typing import Protocol

import httpx

from .errors import GatewayError
from .types import BinaryPart

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


class ImageFetcher(Protocol):
    async def fetch(self, url: str) -> BinaryPart: ...


class HttpImageFetcher:
    def __init__(self, timeout: float = 15.0) -> None:
        self._timeout = timeout

    async def fetch(self, url: str) -> BinaryPart:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GatewayError(
                status_code=502,
                message="Could not fetch the referenced image.",
                code="image_fetch_failed",
            ) from exc

        mime_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
        return BinaryPart(
            mime_type=mime_type or DEFAULT_IMAGE_MIME_TYPE,
            data=response.content,
        )
