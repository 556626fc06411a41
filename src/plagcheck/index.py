"""Metadata index over upload events.

The index is append-only: it inserts FileRecords and reads them back, always
ordered by ascending id (upload order). Id assignment is delegated to the
database. Any database failure surfaces as IOFaultError.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plagcheck.errors import IOFaultError, NotFoundError
from plagcheck.models import FileRecord


class FileIndex:
    """Repository for FileRecord rows.

    Usage:
        async with session_factory() as session:
            index = FileIndex(session)
            record = await index.insert(student_id=..., filename=..., ...)
            await session.commit()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the index with a database session."""
        self._session = session

    async def insert(
        self,
        *,
        student_id: UUID,
        filename: str,
        file_size: int,
        file_hash: str,
        storage_path: str,
    ) -> FileRecord:
        """Append a record and return it with its generated id.

        The row is flushed, not committed; the caller owns the transaction.
        """
        record = FileRecord(
            student_id=student_id,
            filename=filename,
            file_size=file_size,
            file_hash=file_hash,
            storage_path=storage_path,
        )
        self._session.add(record)
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise IOFaultError(f"Failed to add file to index: {e}") from e
        return record

    async def get_by_id(self, file_id: int) -> FileRecord:
        """Fetch one record.

        Raises:
            NotFoundError: no record has this id.
        """
        try:
            record = await self._session.get(FileRecord, file_id)
        except SQLAlchemyError as e:
            raise IOFaultError(f"Failed to get file info: {e}") from e
        if record is None:
            raise NotFoundError(f"File {file_id} not found")
        return record

    async def list_by_student(self, student_id: UUID) -> list[FileRecord]:
        """All uploads by one student, oldest first. Empty if none."""
        stmt = select(FileRecord).where(FileRecord.student_id == student_id).order_by(FileRecord.id)
        return await self._scalars(stmt, "by student")

    async def list_by_hash(self, file_hash: str) -> list[FileRecord]:
        """All uploads of one content hash, oldest first. Empty if none."""
        stmt = select(FileRecord).where(FileRecord.file_hash == file_hash).order_by(FileRecord.id)
        return await self._scalars(stmt, "by hash")

    async def list_by_hashes(self, hashes: Iterable[str]) -> list[FileRecord]:
        """All uploads whose hash is in ``hashes``, oldest first."""
        hash_list = list(hashes)
        if not hash_list:
            return []
        stmt = select(FileRecord).where(FileRecord.file_hash.in_(hash_list)).order_by(FileRecord.id)
        return await self._scalars(stmt, "by hashes")

    async def list_all(self) -> list[FileRecord]:
        """Every record, oldest first."""
        return await self._scalars(select(FileRecord).order_by(FileRecord.id), "all")

    async def colliding_hashes(self) -> list[str]:
        """Hashes uploaded by more than one distinct student.

        Ordered by the lowest file id carrying each hash.
        """
        stmt = (
            select(FileRecord.file_hash)
            .group_by(FileRecord.file_hash)
            .having(func.count(func.distinct(FileRecord.student_id)) > 1)
            .order_by(func.min(FileRecord.id))
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise IOFaultError(f"Failed to get plagiarism groups: {e}") from e
        return list(result.scalars().all())

    async def _scalars(self, stmt, what: str) -> list[FileRecord]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise IOFaultError(f"Failed to list files {what}: {e}") from e
        return list(result.scalars().all())
