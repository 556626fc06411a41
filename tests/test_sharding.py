"""Tests for hash-derived blob placement."""

import hashlib

from plagcheck.storage import shard


class TestShard:
    def test_two_level_layout(self) -> None:
        h = hashlib.sha256(b"hello").hexdigest()
        assert shard(h) == f"{h[0:2]}/{h[2:4]}/{h}.dat"

    def test_deterministic(self) -> None:
        h = hashlib.sha256(b"same content").hexdigest()
        assert {shard(h) for _ in range(10)} == {shard(h)}

    def test_custom_extension(self) -> None:
        assert shard("abcdef", ".bin") == "ab/cd/abcdef.bin"

    def test_short_hash_is_flat(self) -> None:
        assert shard("abc") == "abc.dat"
        assert shard("") == ".dat"

    def test_exactly_four_chars_is_sharded(self) -> None:
        assert shard("abcd") == "ab/cd/abcd.dat"

    def test_distinct_hashes_distinct_locations(self) -> None:
        hashes = [hashlib.sha256(str(i).encode()).hexdigest() for i in range(100)]
        assert len({shard(h) for h in hashes}) == 100
