"""Exact-match plagiarism grouping.

Files are grouped by content hash. A group is reported only when more than
one distinct student uploaded that content; repeat uploads by a single
student never form a group on their own.

Groups are ordered by distinct-student count, descending. Ties keep the
order in which each hash first appears in the input, which for
id-ordered input means the group with the smallest file id comes first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from plagcheck.models import FileRecord

if TYPE_CHECKING:
    from plagcheck.index import FileIndex


@dataclass(frozen=True)
class PlagiarismGroup:
    """Files sharing one content hash, contributed by several students."""

    hash: str
    files: tuple[FileRecord, ...]
    count: int  # distinct students


def build_groups(records: Iterable[FileRecord]) -> list[PlagiarismGroup]:
    """Cluster records by hash and keep clusters spanning more than one student."""
    partitions: dict[str, list[FileRecord]] = {}
    for record in records:
        partitions.setdefault(record.file_hash, []).append(record)

    groups: list[PlagiarismGroup] = []
    for file_hash, files in partitions.items():
        count = len({f.student_id for f in files})
        if count <= 1:
            continue
        groups.append(
            PlagiarismGroup(
                hash=file_hash,
                files=tuple(sorted(files, key=lambda f: f.id)),
                count=count,
            )
        )

    # sorted() is stable: equal counts keep first-appearance order
    return sorted(groups, key=lambda g: g.count, reverse=True)


class PlagiarismDetector:
    """Read-only batch detection over the metadata index."""

    def __init__(self, index: FileIndex) -> None:
        self._index = index

    async def detect(self) -> list[PlagiarismGroup]:
        """Return every current plagiarism group. Safe to call repeatedly."""
        hashes = await self._index.colliding_hashes()
        if not hashes:
            return []
        records = await self._index.list_by_hashes(hashes)
        return build_groups(records)
