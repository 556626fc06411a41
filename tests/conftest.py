"""Shared pytest fixtures for PlagCheck tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from plagcheck.models import Base, FileRecord
from plagcheck.storage import ContentStore, shard

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# Small limits so multi-chunk and oversize paths are cheap to exercise
TEST_MAX_FILE_SIZE = 64 * 1024
TEST_CHUNK_SIZE = 16


@pytest.fixture
def store(tmp_path: Path) -> ContentStore:
    """Content store rooted in a fresh temp directory."""
    return ContentStore(
        tmp_path / "blobs",
        max_file_size=TEST_MAX_FILE_SIZE,
        chunk_size=TEST_CHUNK_SIZE,
    )


@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite engine with all tables created.

    A file database (not :memory:) so concurrent sessions see the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'index.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session whose changes are committed explicitly by each test."""
    async with session_factory() as session:
        yield session


def blob_files(store: ContentStore) -> list[Path]:
    """Every published blob under the store root (staging excluded)."""
    return [
        p for p in store.root.rglob("*")
        if p.is_file() and ".staging" not in p.relative_to(store.root).parts
    ]


def staging_files(store: ContentStore) -> list[Path]:
    return [p for p in (store.root / ".staging").iterdir() if p.is_file()]


MakeRecord = Callable[..., FileRecord]


@pytest.fixture
def make_record() -> MakeRecord:
    """Factory for transient FileRecord instances (not persisted)."""

    def _make(
        *,
        id: int,
        file_hash: str,
        student_id: UUID | None = None,
        filename: str | None = None,
        file_size: int = 10,
    ) -> FileRecord:
        return FileRecord(
            id=id,
            student_id=student_id or uuid4(),
            filename=filename or f"file_{id}.py",
            file_size=file_size,
            file_hash=file_hash,
            storage_path=shard(file_hash),
        )

    return _make
