"""ProjectFilesAsync: primary async class wiring metadata, storage and events."""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from projectfs.events import EventBus, EventType, FileEvent
from projectfs.fs.exceptions import ConsistencyError, NotFoundError
from projectfs.fs.index import build_listing, folder_paths
from projectfs.fs.metadata import MetadataStore
from projectfs.fs.mutations import MutationEngine
from projectfs.fs.reconcile import FolderReconciler
from projectfs.fs.selection import SelectionModel, expand_folder_selection
from projectfs.fs.sharing import SharingService
from projectfs.fs.uploads import UploadManager
from projectfs.fs.utils import ROOT, normalize_path
from projectfs.models.files import ProjectFile
from projectfs.models.folders import ProjectFolder
from projectfs.models.shares import SharedLink

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import timedelta

    from sqlalchemy.ext.asyncio import AsyncEngine

    from projectfs.fs.types import BatchResult, DirectoryListing, FolderCreateResult, UploadTarget
    from projectfs.fs.uploads import UploadHandle
    from projectfs.models.files import ProjectFileBase
    from projectfs.models.folders import ProjectFolderBase
    from projectfs.models.shares import SharedLinkBase
    from projectfs.storage.protocol import ObjectStore

logger = logging.getLogger(__name__)


def _build_zip(entries: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return buffer.getvalue()


class ProjectFilesAsync:
    """Async facade over a project's virtual folder hierarchy.

    Files live as immutable objects in an ``ObjectStore``; folders exist
    only as path prefixes of metadata rows plus optional declarations for
    empty folders.

    Engine-based setup (creates the tables)::

        engine = create_async_engine("postgresql+asyncpg://...")
        pfs = await ProjectFilesAsync.from_engine(engine, store=S3ObjectStore(bucket="files"))

    Direct use with a caller-owned session factory::

        pfs = ProjectFilesAsync(session_factory=factory, store=MemoryObjectStore())
        await pfs.create_folder("p1", "", "Plans", created_by="u1")
        listing = await pfs.list_directory("p1", "Plans")
    """

    def __init__(
        self,
        *,
        session_factory: Callable[..., AsyncSession],
        store: ObjectStore,
        file_model: type[ProjectFileBase] | None = None,
        folder_model: type[ProjectFolderBase] | None = None,
        link_model: type[SharedLinkBase] | None = None,
        share_ttl: timedelta | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._closed = False
        self._engine: AsyncEngine | None = None
        self._store = store
        self._event_bus = event_bus or EventBus()

        self._metadata = MetadataStore(
            session_factory, file_model=file_model, folder_model=folder_model
        )
        self._reconciler = FolderReconciler(self._metadata, store)
        self._mutations = MutationEngine(self._metadata, self._event_bus)
        self._uploads = UploadManager(self._metadata, store, self._event_bus)
        self._sharing = SharingService(
            session_factory, self._metadata, link_model=link_model, ttl=share_ttl
        )

    @classmethod
    async def from_engine(
        cls,
        engine: AsyncEngine,
        *,
        store: ObjectStore,
        file_model: type[ProjectFileBase] | None = None,
        folder_model: type[ProjectFolderBase] | None = None,
        link_model: type[SharedLinkBase] | None = None,
        **kwargs: Any,
    ) -> ProjectFilesAsync:
        """Create the tables on *engine* if missing and return a facade bound to it.

        The engine is disposed by ``close()``.
        """
        models: list[Any] = [
            file_model or ProjectFile,
            folder_model or ProjectFolder,
            link_model or SharedLink,
        ]
        async with engine.begin() as conn:
            for model in models:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)
                )

        sf = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        instance = cls(
            session_factory=sf,
            store=store,
            file_model=file_model,
            folder_model=folder_model,
            link_model=link_model,
            **kwargs,
        )
        instance._engine = engine
        return instance

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    async def list_directory(self, project_id: str, path: str = ROOT) -> DirectoryListing:
        files = await self._metadata.list_files(project_id)
        folders = await self._metadata.list_folders(project_id)
        return build_listing(path, files, folders)

    async def list_folder_paths(self, project_id: str) -> list[str]:
        """Every known folder path, sorted.  Candidates for a move destination."""
        files = await self._metadata.list_files(project_id)
        folders = await self._metadata.list_folders(project_id)
        return folder_paths(files, folders)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(
        self, project_id: str, path: str, name: str, *, created_by: str = ""
    ) -> FolderCreateResult:
        result = await self._reconciler.create_folder(
            project_id, path, name, created_by=created_by
        )
        await self._event_bus.emit(
            FileEvent(
                event_type=EventType.FOLDER_CREATED,
                project_id=project_id,
                path=result.path,
                user_id=created_by or None,
            )
        )
        return result

    async def rename_folder(self, project_id: str, old_path: str, new_name: str) -> BatchResult:
        return await self._mutations.rename_folder(project_id, old_path, new_name)

    async def delete_folder(self, project_id: str, path: str) -> int:
        return await self._mutations.delete_folder(project_id, path)

    async def export_folder(self, project_id: str, path: str = ROOT) -> bytes:
        """Zip every file below *path*, named relative to it.

        Raises:
            NotFoundError: *path* holds no files.
            ConsistencyError: A row points at an object that is gone.
        """
        folder = normalize_path(path)
        records = [
            r for r in await self._metadata.files_under(project_id, folder) if not r.is_sentinel
        ]
        if not records and folder != ROOT:
            raise NotFoundError(folder, f"No files under {folder}")

        entries: list[tuple[str, bytes]] = []
        for record in sorted(records, key=lambda r: r.virtual_path):
            name = record.virtual_path[len(folder) + 1:] if folder else record.virtual_path
            entries.append((name, await self._read_object(record)))

        archive = await asyncio.to_thread(_build_zip, entries)
        logger.info("Exported %d file(s) from %r", len(entries), folder or "/")
        return archive

    # ------------------------------------------------------------------
    # Moves, renames, deletes
    # ------------------------------------------------------------------

    async def move_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
        destination: str | None = ROOT,
    ) -> BatchResult:
        return await self._mutations.move_entries(project_id, file_ids, folder_paths, destination)

    async def rename_file(self, file_id: str, new_name: str) -> ProjectFileBase:
        return await self._mutations.rename_file(file_id, new_name)

    async def delete_file(self, file_id: str) -> None:
        await self._mutations.delete_file(file_id)

    async def delete_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
    ) -> BatchResult:
        return await self._mutations.delete_entries(project_id, file_ids, folder_paths)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def expand_folder_selection(self, project_id: str, path: str) -> list[str]:
        return expand_folder_selection(path, await self._metadata.list_files(project_id))

    async def selection(self, project_id: str) -> SelectionModel:
        """A fresh selection over the project's current files."""
        return SelectionModel(await self._metadata.list_files(project_id))

    # ------------------------------------------------------------------
    # Uploads and downloads
    # ------------------------------------------------------------------

    async def upload(
        self,
        project_id: str,
        relative_path: str,
        data: bytes,
        *,
        uploaded_by: str = "",
        folder: str | None = ROOT,
        mime_type: str | None = None,
    ) -> ProjectFileBase:
        return await self._uploads.upload(
            project_id,
            relative_path,
            data,
            uploaded_by=uploaded_by,
            folder=folder,
            mime_type=mime_type,
        )

    def begin_upload(
        self,
        project_id: str,
        relative_path: str,
        data: bytes,
        *,
        uploaded_by: str = "",
        folder: str | None = ROOT,
        mime_type: str | None = None,
    ) -> UploadHandle:
        return self._uploads.begin_upload(
            project_id,
            relative_path,
            data,
            uploaded_by=uploaded_by,
            folder=folder,
            mime_type=mime_type,
        )

    def cancel_upload(self, upload_id: str) -> bool:
        return self._uploads.cancel_upload(upload_id)

    def pending_uploads(self) -> list[UploadHandle]:
        return self._uploads.pending_uploads()

    async def create_upload_target(
        self,
        project_id: str,
        file_name: str,
        *,
        uploaded_by: str = "",
        expires_in: int = 3600,
    ) -> UploadTarget:
        return await self._uploads.create_upload_target(
            project_id, file_name, uploaded_by=uploaded_by, expires_in=expires_in
        )

    async def complete_upload(
        self,
        project_id: str,
        key: str,
        relative_path: str,
        *,
        size_bytes: int,
        uploaded_by: str = "",
        folder: str | None = ROOT,
        mime_type: str | None = None,
    ) -> ProjectFileBase:
        return await self._uploads.complete_upload(
            project_id,
            key,
            relative_path,
            size_bytes=size_bytes,
            uploaded_by=uploaded_by,
            folder=folder,
            mime_type=mime_type,
        )

    async def download(self, file_id: str) -> bytes:
        """Bytes of one file.

        Raises:
            NotFoundError: The record is gone or deleted.
            ConsistencyError: The record exists but its object does not.
        """
        record = await self._metadata.get_file(file_id)
        if record is None or record.is_sentinel:
            raise NotFoundError(file_id, f"File not found: {file_id}")
        return await self._read_object(record)

    async def _read_object(self, record: ProjectFileBase) -> bytes:
        try:
            return await self._store.get(record.storage_key)
        except NotFoundError as e:
            raise ConsistencyError(
                f"Object {record.storage_key} for {record.virtual_path!r} is missing"
            ) from e

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def create_share_link(
        self,
        project_id: str,
        *,
        folder_path: str | None = None,
        file_ids: Iterable[str] | None = None,
        created_by: str = "",
    ) -> SharedLinkBase:
        return await self._sharing.create_link(
            project_id, folder_path=folder_path, file_ids=file_ids, created_by=created_by
        )

    async def resolve_share_link(self, share_id: str) -> list[ProjectFileBase]:
        return await self._sharing.resolve_link(share_id)

    async def list_share_links(self, project_id: str) -> list[SharedLinkBase]:
        return await self._sharing.list_links(project_id)

    async def revoke_share_link(self, share_id: str) -> bool:
        return await self._sharing.revoke_link(share_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel pending uploads and dispose an engine created by ``from_engine``."""
        if self._closed:
            return
        self._closed = True

        for handle in self._uploads.pending_uploads():
            self._uploads.cancel_upload(handle.upload_id)
        if self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> ProjectFilesAsync:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def metadata(self) -> MetadataStore:
        return self._metadata

    @property
    def store(self) -> ObjectStore:
        return self._store
