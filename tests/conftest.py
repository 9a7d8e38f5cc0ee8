"""Shared fixtures for projectfs tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import projectfs.models  # noqa: F401  (registers the tables)
from projectfs._projectfs_async import ProjectFilesAsync
from projectfs.fs.metadata import MetadataStore
from projectfs.storage.memory import MemoryObjectStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> Callable[..., AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def metadata(session_factory: Callable[..., AsyncSession]) -> MetadataStore:
    return MetadataStore(session_factory)


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
async def pfs(
    session_factory: Callable[..., AsyncSession], store: MemoryObjectStore
) -> AsyncIterator[ProjectFilesAsync]:
    """Async facade over in-memory SQLite and an in-memory object store."""
    instance = ProjectFilesAsync(session_factory=session_factory, store=store)
    yield instance
    await instance.close()
