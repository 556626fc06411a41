"""FileRecord model: one row per upload event."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from plagcheck.models.base import Base


class FileRecord(Base):
    """Metadata for a single upload.

    A FileRecord describes an upload event, not a physical blob. Uploads of
    identical content share ``file_hash`` and therefore ``storage_path``;
    the bytes themselves are stored once by the content-addressed store.
    Rows are append-only.
    """

    __tablename__ = "files"
    # Keep ids strictly increasing on SQLite too (no rowid reuse)
    __table_args__ = {"sqlite_autoincrement": True}
    # created_at is loaded on insert (RETURNING), not lazily
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[UUID] = mapped_column(index=True)
    filename: Mapped[str] = mapped_column(String(1024))
    file_size: Mapped[int] = mapped_column(BigInteger)
    file_hash: Mapped[str] = mapped_column(String(64), index=True)
    storage_path: Mapped[str] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"FileRecord(id={self.id!r}, student_id={self.student_id!r}, "
            f"filename={self.filename!r}, file_hash={self.file_hash!r})"
        )
