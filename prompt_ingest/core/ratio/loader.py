"""
Image loaders used by the ratio inferrer.
"""

from typing import Protocol

import httpx

from prompt_ingest.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024


class ImageLoader(Protocol):
    """Anything that can fetch the bytes behind an image reference."""

    async def load(self, url: str) -> bytes:
        ...


class HttpImageLoader:
    """
    Fetch images over HTTP(S) with httpx.

    A client can be injected (tests pass one bound to a mock transport);
    otherwise one is created on first use and closed by ``aclose()``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        user_agent: str = "prompt-ingest/ratio-inferrer",
    ):
        self._client = client
        self._owns_client = client is None
        self.max_bytes = max_bytes
        self.user_agent = user_agent

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, "Accept": "image/*"},
            )
        return self._client

    async def load(self, url: str) -> bytes:
        """
        Download an image.

        Args:
            url: Absolute http(s) URL

        Returns:
            The response body

        Raises:
            httpx.HTTPError: On transport errors and non-2xx responses
            ValueError: If the body is larger than ``max_bytes``
        """
        client = self._get_client()
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            chunks: list[bytes] = []
            size = 0
            async for chunk in response.aiter_bytes():
                size += len(chunk)
                if size > self.max_bytes:
                    raise ValueError(f"image exceeds {self.max_bytes} bytes")
                chunks.append(chunk)

        logger.debug("Fetched image", extra={"url": url, "size_bytes": size})
        return b"".join(chunks)

    async def aclose(self) -> None:
        """Close the HTTP client if this loader created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
