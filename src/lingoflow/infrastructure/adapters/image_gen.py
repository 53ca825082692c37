"""ImageGenerator adapters."""

import logging
from collections.abc import Sequence

import httpx

from lingoflow.domain.constants import PLACEHOLDER_IMAGE_POOL, REQUEST_TIMEOUT
from lingoflow.domain.ports import ImageGenerator


class PlaceholderImageGenerator(ImageGenerator):
    """Picks a stock image from a fixed pool; the same term always gets the same URL."""

    def __init__(self, pool: Sequence[str] = PLACEHOLDER_IMAGE_POOL):
        if not pool:
            raise ValueError("Image pool must not be empty")
        self.pool = pool

    async def generate(self, term: str) -> str:
        index = sum(ord(ch) for ch in term) % len(self.pool)
        return self.pool[index]


class HttpImageGenerator(ImageGenerator):
    """
    Calls an image service that accepts {"term": ...} and answers {"url": ...}.
    """

    def __init__(self, url: str):
        self.logger = logging.getLogger(__name__)
        self.url = url
        self._client: httpx.AsyncClient | None = None

    async def generate(self, term: str) -> str:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        resp = await self._client.post(self.url, json={"term": term})
        resp.raise_for_status()
        url = resp.json().get("url")
        if not url:
            raise ValueError(f"Image service returned no url for '{term}'")
        self.logger.debug(f"Generated image for '{term}': {url}")
        return url

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
