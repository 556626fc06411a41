"""Public views of file records and plagiarism groups.

The storage location is internal and never part of these schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from plagcheck.grouping import PlagiarismGroup


class FileInfo(BaseModel):
    """One upload as seen by API clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: UUID
    filename: str
    file_size: int
    file_hash: str


class PlagiarismGroupOut(BaseModel):
    """A hash shared by uploads from several students."""

    hash: str
    files: list[FileInfo]
    count: int = Field(description="Number of distinct students in the group")

    @classmethod
    def from_group(cls, group: PlagiarismGroup) -> PlagiarismGroupOut:
        return cls(
            hash=group.hash,
            files=[FileInfo.model_validate(f) for f in group.files],
            count=group.count,
        )
