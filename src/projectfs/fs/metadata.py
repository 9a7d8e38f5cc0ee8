"""
Metadata store: file and folder rows in the relational table.

Every public method opens its own session and commits before returning,
so each call is one independent round trip.  Sequential loops built on
top of this class therefore observe each item's outcome separately and
never hold a transaction across the loop.

Prefix filters compare ``substr(path, 1, len(prefix)) = prefix`` with a
trailing separator on the prefix.  Unlike ``LIKE`` this is exact and
case-sensitive on every dialect and needs no wildcard escaping.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from projectfs.models.files import FileKind, ProjectFile
from projectfs.models.folders import ProjectFolder

from .exceptions import NotFoundError, StorageError
from .utils import ROOT, SEPARATOR, normalize_path, parent_path, sentinel_path

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from projectfs.models.files import ProjectFileBase
    from projectfs.models.folders import ProjectFolderBase

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(
    session_factory: Callable[..., AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """One session: commit on success, translate driver errors to StorageError."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StorageError(f"Metadata store error: {e}") from e


def _prefix_clause(column: Any, folder_path: str) -> Any:
    """SQL condition: *column* lies strictly inside *folder_path*."""
    prefix = folder_path + SEPARATOR
    return func.substr(column, 1, len(prefix)) == prefix


class MetadataStore:
    """
    Async access to the file and folder metadata tables.

    USAGE:
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        metadata = MetadataStore(factory)
        record = await metadata.insert_file(ProjectFile(project_id="p1", ...))

    The session factory must be created with ``expire_on_commit=False``;
    returned records are detached and read after their session closes.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        file_model: type[ProjectFileBase] | None = None,
        folder_model: type[ProjectFolderBase] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.file_model: Any = file_model or ProjectFile
        self.folder_model: Any = folder_model or ProjectFolder

    def _session(self) -> Any:
        return unit_of_work(self._session_factory)

    def _active_files(self, project_id: str) -> Any:
        fm = self.file_model
        return select(fm).where(fm.project_id == project_id, fm.is_deleted == False)  # noqa: E712

    # =========================================================================
    # File records
    # =========================================================================

    async def insert_file(self, record: ProjectFileBase) -> ProjectFileBase:
        """Insert a new file row (normalizing its virtual path)."""
        record.virtual_path = normalize_path(record.virtual_path)
        async with self._session() as session:
            session.add(record)
        logger.debug("Inserted file record %s at %r", record.id, record.virtual_path)
        return record

    async def get_file(
        self, file_id: str, *, include_deleted: bool = False
    ) -> ProjectFileBase | None:
        async with self._session() as session:
            record = await session.get(self.file_model, file_id)
        if record is None or (record.is_deleted and not include_deleted):
            return None
        return record

    async def list_files(
        self, project_id: str, *, include_deleted: bool = False
    ) -> list[ProjectFileBase]:
        """All file rows of a project (sentinels included)."""
        fm = self.file_model
        stmt = (
            select(fm).where(fm.project_id == project_id)
            if include_deleted
            else self._active_files(project_id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def files_under(self, project_id: str, folder_path: str) -> list[ProjectFileBase]:
        """Non-deleted rows at any depth strictly below *folder_path*."""
        folder_path = normalize_path(folder_path)
        stmt = self._active_files(project_id)
        if folder_path != ROOT:
            stmt = stmt.where(_prefix_clause(self.file_model.virtual_path, folder_path))
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def has_content_under(self, project_id: str, folder_path: str) -> bool:
        """True if any non-deleted row lives below *folder_path*."""
        fm = self.file_model
        stmt = (
            self._active_files(project_id)
            .where(_prefix_clause(fm.virtual_path, normalize_path(folder_path)))
            .limit(1)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def names_in(self, project_id: str, folder_path: str) -> set[str]:
        """Names of the direct children (files and sub-folders) of *folder_path*."""
        folder_path = normalize_path(folder_path)
        names: set[str] = set()
        for record in await self.files_under(project_id, folder_path):
            path = normalize_path(record.virtual_path)
            remainder = path[len(folder_path) + 1:] if folder_path else path
            head, sep, _ = remainder.partition(SEPARATOR)
            if sep or record.kind != FileKind.SENTINEL:
                names.add(head)
        for folder in await self.list_folders(project_id):
            if normalize_path(folder.parent_path) == folder_path:
                names.add(folder.folder_name)
        return names

    async def get_sentinel(self, project_id: str, folder_path: str) -> ProjectFileBase | None:
        """The active placeholder row for *folder_path*, if any."""
        fm = self.file_model
        stmt = self._active_files(project_id).where(
            fm.virtual_path == sentinel_path(folder_path),
            fm.kind == FileKind.SENTINEL,
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def file_for_key(self, storage_key: str) -> ProjectFileBase | None:
        """The active row that points at *storage_key*, if any."""
        fm = self.file_model
        stmt = select(fm).where(
            fm.storage_key == storage_key,
            fm.is_deleted == False,  # noqa: E712
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def update_path(self, file_id: str, new_path: str) -> ProjectFileBase:
        """Rewrite one row's virtual path.

        Raises:
            NotFoundError: The row is gone or already soft-deleted.
        """
        async with self._session() as session:
            record = await session.get(self.file_model, file_id)
            if record is None or record.is_deleted:
                raise NotFoundError(file_id, f"File record not found: {file_id}")
            record.virtual_path = normalize_path(new_path)
            record.updated_at = datetime.now(UTC)
            session.add(record)
        return record

    async def soft_delete(self, file_id: str) -> ProjectFileBase:
        """Flag one row as deleted.

        Raises:
            NotFoundError: The row is gone or already soft-deleted.
        """
        async with self._session() as session:
            record = await session.get(self.file_model, file_id)
            if record is None or record.is_deleted:
                raise NotFoundError(file_id, f"File record not found: {file_id}")
            record.is_deleted = True
            record.updated_at = datetime.now(UTC)
            session.add(record)
        return record

    async def soft_delete_under(self, project_id: str, folder_path: str) -> int:
        """Flag every non-deleted row below *folder_path*.  Returns the row count."""
        fm = self.file_model
        stmt = (
            update(fm)
            .where(
                fm.project_id == project_id,
                fm.is_deleted == False,  # noqa: E712
                _prefix_clause(fm.virtual_path, normalize_path(folder_path)),
            )
            .values(is_deleted=True, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
        return int(result.rowcount or 0)

    # =========================================================================
    # Folder records
    # =========================================================================

    async def list_folders(self, project_id: str) -> list[ProjectFolderBase]:
        fm = self.folder_model
        async with self._session() as session:
            result = await session.execute(select(fm).where(fm.project_id == project_id))
            return list(result.scalars().all())

    async def get_folder(self, project_id: str, folder_path: str) -> ProjectFolderBase | None:
        fm = self.folder_model
        stmt = select(fm).where(
            fm.project_id == project_id, fm.folder_path == normalize_path(folder_path)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def insert_folder(
        self, project_id: str, folder_path: str, *, created_by: str = ""
    ) -> ProjectFolderBase:
        folder_path = normalize_path(folder_path)
        folder = self.folder_model(
            project_id=project_id,
            folder_name=folder_path.rsplit(SEPARATOR, 1)[-1],
            folder_path=folder_path,
            parent_path=parent_path(folder_path),
            created_by=created_by,
        )
        async with self._session() as session:
            session.add(folder)
        logger.debug("Inserted folder record %r", folder_path)
        return folder

    async def folders_within(self, project_id: str, folder_path: str) -> list[ProjectFolderBase]:
        """Folder rows at *folder_path* or anywhere below it."""
        fm = self.folder_model
        folder_path = normalize_path(folder_path)
        stmt = select(fm).where(
            fm.project_id == project_id,
            (fm.folder_path == folder_path) | _prefix_clause(fm.folder_path, folder_path),
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_folder_path(self, folder_id: str, new_path: str) -> ProjectFolderBase:
        """Rewrite one folder row's path, name and parent."""
        new_path = normalize_path(new_path)
        async with self._session() as session:
            folder = await session.get(self.folder_model, folder_id)
            if folder is None:
                raise NotFoundError(folder_id, f"Folder record not found: {folder_id}")
            folder.folder_path = new_path
            folder.folder_name = new_path.rsplit(SEPARATOR, 1)[-1]
            folder.parent_path = parent_path(new_path)
            folder.updated_at = datetime.now(UTC)
            session.add(folder)
        return folder

    async def delete_folders_within(self, project_id: str, folder_path: str) -> int:
        """Remove folder rows at or below *folder_path*.  Returns the row count."""
        fm = self.folder_model
        folder_path = normalize_path(folder_path)
        stmt = delete(fm).where(
            fm.project_id == project_id,
            (fm.folder_path == folder_path) | _prefix_clause(fm.folder_path, folder_path),
        )
        async with self._session() as session:
            result = await session.execute(stmt)
        return int(result.rowcount or 0)

