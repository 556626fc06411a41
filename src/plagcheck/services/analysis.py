"""Plagiarism checks and word clouds over stored submissions."""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plagcheck.clients.wordcloud import WordCloudClient
from plagcheck.grouping import PlagiarismDetector, PlagiarismGroup
from plagcheck.index import FileIndex
from plagcheck.storage import ContentStore


class AnalysisService:
    """Read-side analysis. Never writes to the index or the store."""

    def __init__(
        self,
        store: ContentStore,
        session_factory: async_sessionmaker[AsyncSession],
        wordcloud_client: WordCloudClient,
    ) -> None:
        self._store = store
        self._session_factory = session_factory
        self._wordcloud = wordcloud_client

    async def check_plagiarism(self) -> list[PlagiarismGroup]:
        async with self._session_factory() as session:
            return await PlagiarismDetector(FileIndex(session)).detect()

    async def word_cloud(self, file_id: int) -> bytes:
        """Render the text of a stored file as a word cloud image."""
        async with self._session_factory() as session:
            record = await FileIndex(session).get_by_id(file_id)

        content = await asyncio.to_thread(self._store.read_bytes, record.storage_path)
        text = content.decode("utf-8", errors="replace")
        return await self._wordcloud.render(text)
