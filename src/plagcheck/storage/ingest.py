"""Single-pass ingest: hash an upload stream while staging it to disk.

The stream is read in fixed-size chunks. Each chunk updates a SHA-256 digest
and is written to a private staging file, so content is never buffered in
memory as a whole and the input is read exactly once.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from plagcheck.errors import IOFaultError, OversizeError, SizeMismatchError, UploadCancelledError

DEFAULT_CHUNK_SIZE = 64 * 1024


class ReadableStream(Protocol):
    """Anything with a blocking ``read(n)`` returning bytes."""

    def read(self, size: int = -1, /) -> bytes: ...


@dataclass(frozen=True)
class StagedUpload:
    """Bytes staged to a private file, with their digest and length."""

    path: Path
    sha256: str
    size: int


def check_declared_size(declared_size: int, max_size: int) -> None:
    """Reject a declared size before any bytes are transferred."""
    if declared_size < 0:
        raise SizeMismatchError(declared_size, 0)
    if declared_size > max_size:
        raise OversizeError(declared_size, max_size)


def stage(
    stream: ReadableStream | BinaryIO,
    declared_size: int,
    *,
    staging_dir: Path,
    max_size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel: threading.Event | None = None,
) -> StagedUpload:
    """Copy ``stream`` into a staging file under ``staging_dir``, hashing as it goes.

    Args:
        stream: Source of the upload bytes.
        declared_size: Size the caller claims the upload has.
        staging_dir: Directory for the staging file. Must be on the same
            filesystem as the final blob locations.
        max_size: Largest accepted declared size.
        chunk_size: Bytes read per step.
        cancel: Optional flag checked before every chunk.

    Returns:
        The staged upload. The caller owns ``path`` and must remove it.

    Raises:
        OversizeError: ``declared_size`` exceeds ``max_size`` (no bytes read).
        SizeMismatchError: transferred byte count differs from ``declared_size``.
        UploadCancelledError: ``cancel`` was set mid-transfer.
        IOFaultError: the staging file could not be written.
    """
    check_declared_size(declared_size, max_size)

    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="upload-", suffix=".part", dir=staging_dir)
    except OSError as e:
        raise IOFaultError(f"Failed to create staging file: {e}") from e

    path = Path(name)
    digest = hashlib.sha256()
    written = 0

    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                if cancel is not None and cancel.is_set():
                    raise UploadCancelledError("Upload cancelled during transfer")

                chunk = stream.read(chunk_size)
                if not chunk:
                    break

                written += len(chunk)
                if written > declared_size:
                    # Stop early instead of draining an oversized stream
                    raise SizeMismatchError(declared_size, written)

                digest.update(chunk)
                out.write(chunk)

            out.flush()
            os.fsync(out.fileno())

        if written != declared_size:
            raise SizeMismatchError(declared_size, written)
    except OSError as e:
        path.unlink(missing_ok=True)
        raise IOFaultError(f"Failed to stage upload: {e}") from e
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    return StagedUpload(path=path, sha256=digest.hexdigest(), size=written)
