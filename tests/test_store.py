"""Tests for the content-addressed store."""

from __future__ import annotations

import hashlib
import io
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import TEST_CHUNK_SIZE, TEST_MAX_FILE_SIZE, blob_files, staging_files
from plagcheck.errors import IOFaultError, NotFoundError, OversizeError, SizeMismatchError, UploadCancelledError
from plagcheck.storage import ContentStore, shard


def put_bytes(store: ContentStore, data: bytes):
    return store.put(io.BytesIO(data), len(data))


class TestPut:
    def test_put_places_blob_at_shard(self, store: ContentStore) -> None:
        data = b"print('hello world')\n"
        result = put_bytes(store, data)

        expected_hash = hashlib.sha256(data).hexdigest()
        assert result.sha256 == expected_hash
        assert result.location == shard(expected_hash)
        assert result.size == len(data)
        assert result.created is True
        assert (store.root / result.location).read_bytes() == data

    def test_round_trip(self, store: ContentStore) -> None:
        data = bytes(range(256)) * 20
        result = put_bytes(store, data)

        f, size = store.open(result.location)
        with f:
            assert f.read() == data
        assert size == len(data)
        assert store.read_bytes(result.location) == data

    def test_duplicate_put_is_idempotent(self, store: ContentStore) -> None:
        data = b"identical submission"
        first = put_bytes(store, data)
        second = put_bytes(store, data)
        third = put_bytes(store, data)

        assert first.created is True
        assert second.created is False
        assert third.created is False
        assert first.location == second.location == third.location
        assert blob_files(store) == [store.root / first.location]

    def test_existing_blob_not_rewritten(self, store: ContentStore) -> None:
        data = b"keep me"
        result = put_bytes(store, data)
        mtime_before = (store.root / result.location).stat().st_mtime_ns

        put_bytes(store, data)

        assert (store.root / result.location).stat().st_mtime_ns == mtime_before

    def test_different_content_different_blobs(self, store: ContentStore) -> None:
        a = put_bytes(store, b"solution a")
        b = put_bytes(store, b"solution b")

        assert a.location != b.location
        assert len(blob_files(store)) == 2

    def test_no_staging_leftovers(self, store: ContentStore) -> None:
        put_bytes(store, b"one")
        put_bytes(store, b"one")
        put_bytes(store, b"two")

        assert staging_files(store) == []

    def test_size_mismatch_leaves_nothing(self, store: ContentStore) -> None:
        with pytest.raises(SizeMismatchError):
            store.put(io.BytesIO(b"short"), 100)

        assert blob_files(store) == []
        assert staging_files(store) == []

    def test_oversize_rejected(self, store: ContentStore) -> None:
        with pytest.raises(OversizeError):
            store.put(io.BytesIO(b""), TEST_MAX_FILE_SIZE + 1)

        assert blob_files(store) == []

    def test_cancel_before_publish(self, store: ContentStore) -> None:
        cancel = threading.Event()
        data = b"a" * (TEST_CHUNK_SIZE * 3)

        class CancelAtEof(io.BytesIO):
            def read(self, size: int = -1, /) -> bytes:
                chunk = super().read(size)
                if not chunk:
                    cancel.set()
                return chunk

        with pytest.raises(UploadCancelledError):
            store.put(CancelAtEof(data), len(data), cancel=cancel)

        assert blob_files(store) == []
        assert staging_files(store) == []

    def test_publish_fault_is_io_fault(self, store: ContentStore) -> None:
        with patch("plagcheck.storage.store.os.link", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(IOFaultError):
                put_bytes(store, b"data")

        assert blob_files(store) == []
        assert staging_files(store) == []

    def test_concurrent_identical_puts(self, store: ContentStore) -> None:
        """Racing puts of the same content all succeed with one physical blob."""
        data = b"shared homework answer\n" * 50
        workers = 16
        barrier = threading.Barrier(workers)

        def _put(_: int):
            barrier.wait()
            return put_bytes(store, data)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(_put, range(workers)))

        assert len({r.location for r in results}) == 1
        assert sum(r.created for r in results) == 1
        assert len(blob_files(store)) == 1
        assert store.read_bytes(results[0].location) == data
        assert staging_files(store) == []


class TestRead:
    def test_open_missing_is_not_found(self, store: ContentStore) -> None:
        with pytest.raises(NotFoundError):
            store.open(shard("ab" * 32))

    def test_open_missing_shard_dir_is_not_found(self, store: ContentStore) -> None:
        with pytest.raises(NotFoundError):
            store.open("zz/yy/nothing.dat")

    def test_permission_fault_is_io_fault(self, store: ContentStore) -> None:
        result = put_bytes(store, b"secret")

        with patch.object(Path, "open", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(IOFaultError):
                store.open(result.location)

    def test_location_outside_root_rejected(self, store: ContentStore) -> None:
        with pytest.raises(NotFoundError):
            store.open("../../etc/passwd")

    def test_exists(self, store: ContentStore) -> None:
        result = put_bytes(store, b"present")

        assert store.exists(result.location)
        assert not store.exists(shard("00" * 32))
        assert not store.exists("../outside.dat")


class TestConstruction:
    def test_creates_root_and_staging(self, tmp_path: Path) -> None:
        root = tmp_path / "nested" / "blobs"
        store = ContentStore(root, max_file_size=10)

        assert store.root == root.resolve()
        assert (root / ".staging").is_dir()

    def test_location_for_uses_extension(self, tmp_path: Path) -> None:
        store = ContentStore(tmp_path, max_file_size=10, extension=".blob")
        assert store.location_for("abcdef") == "ab/cd/abcdef.blob"
