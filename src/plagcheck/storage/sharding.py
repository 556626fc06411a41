"""Deterministic placement of blobs from their content hash."""

from __future__ import annotations

from typing import Final

DEFAULT_EXTENSION: Final = ".dat"

# Hex characters consumed by each directory level
_LEVEL_WIDTH: Final = 2
_LEVELS: Final = 2


def shard(file_hash: str, extension: str = DEFAULT_EXTENSION) -> str:
    """Return the storage location for a content hash.

    The first two hex characters name the first directory, the next two the
    second, and the full hash plus ``extension`` is the file name. Hashes
    shorter than four characters fall back to a flat file name.

    Locations always use ``/`` so they are stable across platforms.

    Examples:
        "abcdef..." -> "ab/cd/abcdef....dat"
        "abc"       -> "abc.dat"
    """
    prefix_len = _LEVEL_WIDTH * _LEVELS
    if len(file_hash) < prefix_len:
        return f"{file_hash}{extension}"

    levels = [file_hash[i : i + _LEVEL_WIDTH] for i in range(0, prefix_len, _LEVEL_WIDTH)]
    return "/".join([*levels, f"{file_hash}{extension}"])
