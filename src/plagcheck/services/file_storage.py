"""Upload, download and listing of student submissions.

An upload runs strictly in order: hash and stage, publish the blob, then
insert the metadata row. A FileRecord therefore never points at a location
that does not hold its bytes, and a failed or cancelled upload leaves no row.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import BinaryIO
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plagcheck.index import FileIndex
from plagcheck.models import FileRecord
from plagcheck.storage import ContentStore, check_declared_size
from plagcheck.storage.ingest import ReadableStream

logger = logging.getLogger(__name__)


class FileStorageService:
    """Service for storing and retrieving submissions.

    Usage:
        service = FileStorageService(store, async_session_factory)
        record = await service.upload(student_id, "main.py", upload.file, upload.size)
    """

    def __init__(
        self,
        store: ContentStore,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._store = store
        self._session_factory = session_factory

    async def upload(
        self,
        student_id: UUID,
        filename: str,
        stream: ReadableStream | BinaryIO,
        declared_size: int,
    ) -> FileRecord:
        """Store an upload and record it in the index.

        Blocking file I/O runs in a worker thread. If this task is cancelled
        while the transfer is in flight, the worker is told to abort before
        publishing, and no metadata row is written.
        """
        check_declared_size(declared_size, self._store.max_file_size)

        cancel = threading.Event()
        try:
            put = await asyncio.to_thread(self._store.put, stream, declared_size, cancel=cancel)
        except asyncio.CancelledError:
            cancel.set()
            raise

        async with self._session_factory() as session:
            record = await FileIndex(session).insert(
                student_id=student_id,
                filename=filename,
                file_size=put.size,
                file_hash=put.sha256,
                storage_path=put.location,
            )
            await session.commit()

        logger.info(
            "Upload %d by %s: %s (%d bytes, %s)",
            record.id,
            student_id,
            put.sha256[:12],
            put.size,
            "stored" if put.created else "deduplicated",
        )
        return record

    async def download(self, file_id: int) -> tuple[FileRecord, BinaryIO]:
        """Look up a record and open its blob. The caller closes the stream."""
        record = await self.get_file(file_id)
        return record, await self.open_blob(record)

    async def open_blob(self, record: FileRecord) -> BinaryIO:
        """Open the blob behind an already fetched record. The caller closes the stream."""
        stream, _ = await asyncio.to_thread(self._store.open, record.storage_path)
        return stream

    async def get_file(self, file_id: int) -> FileRecord:
        async with self._session_factory() as session:
            return await FileIndex(session).get_by_id(file_id)

    async def list_by_student(self, student_id: UUID) -> list[FileRecord]:
        async with self._session_factory() as session:
            return await FileIndex(session).list_by_student(student_id)

    async def list_by_hash(self, file_hash: str) -> list[FileRecord]:
        async with self._session_factory() as session:
            return await FileIndex(session).list_by_hash(file_hash)
