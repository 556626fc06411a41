"""Content-addressed blob store with idempotent, lock-free dedup.

Blobs live at ``<root>/<shard(sha256)>``. A put stages the upload to a
private file under ``<root>/.staging`` and then publishes it with a hard
link. ``os.link`` creates the final name in one atomic step and refuses to
replace an existing one, so:

- a reader never sees a partially written blob;
- concurrent puts of the same content race on the link, exactly one wins,
  and every loser observes the blob as already present;
- an existing blob is never overwritten.

Puts of different content touch different names and share no lock.
"""

from __future__ import annotations

import errno
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from plagcheck.errors import IOFaultError, NotFoundError, UploadCancelledError
from plagcheck.storage.ingest import DEFAULT_CHUNK_SIZE, ReadableStream, stage
from plagcheck.storage.sharding import DEFAULT_EXTENSION, shard

logger = logging.getLogger(__name__)

STAGING_DIRNAME = ".staging"


@dataclass(frozen=True)
class PutResult:
    """Outcome of a put.

    ``created`` is False when the blob was already present (dedup hit).
    """

    sha256: str
    location: str
    size: int
    created: bool


class ContentStore:
    """Handle to one content-addressed storage root.

    Build it once at process start and pass it to whoever needs it.

    Usage:
        store = ContentStore("/var/lib/plagcheck", max_file_size=10 * 1024 * 1024)
        with open("solution.py", "rb") as f:
            result = store.put(f, os.fstat(f.fileno()).st_size)
        data = store.read_bytes(result.location)
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        max_file_size: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        extension: str = DEFAULT_EXTENSION,
    ) -> None:
        self._root = Path(root).resolve()
        self._staging_dir = self._root / STAGING_DIRNAME
        self._max_file_size = max_file_size
        self._chunk_size = chunk_size
        self._extension = extension

        try:
            self._staging_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFaultError(f"Failed to create storage root {self._root}: {e}") from e

    @property
    def root(self) -> Path:
        return self._root

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    def location_for(self, sha256: str) -> str:
        """Location of the blob for ``sha256`` (pure, no I/O)."""
        return shard(sha256, self._extension)

    def location_path(self, location: str) -> Path:
        """Absolute path of ``location`` under the root.

        Raises:
            NotFoundError: ``location`` resolves outside the root.
        """
        path = (self._root / location).resolve()
        if not path.is_relative_to(self._root) or path == self._root:
            raise NotFoundError(f"Invalid storage location: {location!r}")
        return path

    def put(
        self,
        stream: ReadableStream | BinaryIO,
        declared_size: int,
        *,
        cancel: threading.Event | None = None,
    ) -> PutResult:
        """Hash, stage and publish an upload.

        After a successful return exactly one blob exists at the returned
        location, whether this call created it or an earlier or concurrent
        call did.

        Raises:
            OversizeError: declared size exceeds the maximum.
            SizeMismatchError: transferred bytes differ from the declared size.
            UploadCancelledError: ``cancel`` was set before publish.
            IOFaultError: the filesystem failed.
        """
        staged = stage(
            stream,
            declared_size,
            staging_dir=self._staging_dir,
            max_size=self._max_file_size,
            chunk_size=self._chunk_size,
            cancel=cancel,
        )

        location = self.location_for(staged.sha256)
        final_path = self._root / location

        try:
            if cancel is not None and cancel.is_set():
                raise UploadCancelledError("Upload cancelled before publish")

            created = self._publish(staged.path, final_path)
        finally:
            staged.path.unlink(missing_ok=True)

        if created:
            logger.debug("Stored blob %s (%d bytes)", location, staged.size)
        else:
            logger.debug("Blob %s already present, skipped write", location)

        return PutResult(sha256=staged.sha256, location=location, size=staged.size, created=created)

    def _publish(self, staged_path: Path, final_path: Path) -> bool:
        """Atomically make ``staged_path`` visible at ``final_path``.

        Returns True if this call created the blob, False if it already existed.
        """
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            os.link(staged_path, final_path)
        except FileExistsError:
            return False
        except OSError as e:
            if e.errno == errno.EEXIST:
                return False
            raise IOFaultError(f"Failed to publish blob {final_path.name}: {e}") from e
        return True

    def exists(self, location: str) -> bool:
        """Whether a blob is present at ``location``."""
        try:
            return self.location_path(location).is_file()
        except NotFoundError:
            return False

    def open(self, location: str) -> tuple[BinaryIO, int]:
        """Open the blob at ``location`` for reading.

        Returns:
            The open binary file and its size in bytes. The caller closes it.

        Raises:
            NotFoundError: nothing is stored at ``location``.
            IOFaultError: the blob exists but cannot be read.
        """
        path = self.location_path(location)
        try:
            f = path.open("rb")
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(f"Blob not found: {location}") from e
        except OSError as e:
            raise IOFaultError(f"Failed to open blob {location}: {e}") from e

        try:
            size = os.fstat(f.fileno()).st_size
        except OSError as e:
            f.close()
            raise IOFaultError(f"Failed to stat blob {location}: {e}") from e

        return f, size

    def read_bytes(self, location: str) -> bytes:
        """Read a whole blob into memory."""
        f, _ = self.open(location)
        with f:
            try:
                return f.read()
            except OSError as e:
                raise IOFaultError(f"Failed to read blob {location}: {e}") from e
