"""Async client for a QuickChart-compatible word cloud renderer."""

import logging
import time

import httpx

from plagcheck.config import settings
from plagcheck.errors import IOFaultError

logger = logging.getLogger(__name__)


class WordCloudClient:
    """Renders word clouds by delegating to an external chart service.

    The service receives the raw text and returns a PNG image. Nothing is
    rendered locally.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.wordcloud_base_url).rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.wordcloud_timeout,
        )

    @staticmethod
    def chart_config(text: str) -> dict:
        """Chart definition understood by the renderer."""
        return {"type": "wordcloud", "data": {"text": text}}

    async def render(self, text: str) -> bytes:
        """Render ``text`` as a word cloud image.

        Raises:
            ValueError: ``text`` is empty.
            IOFaultError: the renderer is unreachable or answered with an error.
        """
        if not text.strip():
            raise ValueError("Cannot render a word cloud from empty text")

        start_time = time.time()
        try:
            response = await self._client.post(
                f"{self._base_url}/chart",
                json={"chart": self.chart_config(text), "format": "png"},
            )
        except httpx.HTTPError as e:
            raise IOFaultError(f"Failed to call word cloud renderer: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise IOFaultError(
                f"Word cloud renderer returned error: {response.status_code}, body: {response.text[:200]}"
            )

        elapsed = (time.time() - start_time) * 1000  # ms
        logger.info("[WORDCLOUD] %d chars → %d bytes (%.0fms)", len(text), len(response.content), elapsed)
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
