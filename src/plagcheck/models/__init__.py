"""Database models for PlagCheck."""

from plagcheck.models.base import Base
from plagcheck.models.file_record import FileRecord

__all__ = [
    "Base",
    "FileRecord",
]
