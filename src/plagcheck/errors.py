"""Error taxonomy for the storage engine and metadata index.

Every error carries enough classification for an outer layer to pick a
response status; the mapping itself lives in ``plagcheck.app``.
"""

from __future__ import annotations


class PlagCheckError(Exception):
    """Base class for all PlagCheck errors."""


class OversizeError(PlagCheckError):
    """Declared upload size exceeds the configured maximum."""

    def __init__(self, declared_size: int, max_size: int) -> None:
        self.declared_size = declared_size
        self.max_size = max_size
        super().__init__(f"File size {declared_size} exceeds max file size {max_size}")


class SizeMismatchError(PlagCheckError):
    """Bytes transferred differ from the declared size."""

    def __init__(self, declared_size: int, actual_size: int) -> None:
        self.declared_size = declared_size
        self.actual_size = actual_size
        super().__init__(
            f"File size mismatch: declared {declared_size} bytes, received {actual_size}"
        )


class NotFoundError(PlagCheckError):
    """Requested file record or storage location does not exist."""


class IOFaultError(PlagCheckError):
    """Underlying storage, index or rendering backend failed.

    Transient from the caller's point of view. Never retried here.
    """


class UploadCancelledError(PlagCheckError):
    """Upload was cancelled before its blob was published."""
