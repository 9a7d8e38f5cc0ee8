"""ProjectFiles: synchronous wrapper running ProjectFilesAsync on a private loop."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from projectfs._projectfs_async import ProjectFilesAsync
from projectfs.fs.utils import ROOT
from projectfs.storage import open_store

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from projectfs.events import EventBus
    from projectfs.fs.selection import SelectionModel
    from projectfs.fs.types import BatchResult, DirectoryListing, FolderCreateResult, UploadTarget
    from projectfs.fs.uploads import UploadHandle
    from projectfs.models.files import ProjectFileBase
    from projectfs.models.shares import SharedLinkBase
    from projectfs.storage.protocol import ObjectStore

logger = logging.getLogger(__name__)


def default_data_dir() -> Path:
    """``PROJECTFS_DATA_DIR`` if set, else ``~/.projectfs``."""
    configured = os.environ.get("PROJECTFS_DATA_DIR")
    return Path(configured).expanduser() if configured else Path.home() / ".projectfs"


def _database_url(database: str | None, data_dir: Path) -> str:
    if database is None:
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{data_dir / 'projectfs.db'}"
    if "://" in database:
        return database
    path = Path(database).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}"


async def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return fn(*args, **kwargs)


class ProjectFiles:
    """Project file hierarchy with a synchronous API.

    Presents a synchronous API backed by a private event loop in a
    background thread, so callers can use it from plain sync code,
    scripts, or inside an existing async context.

    Usage::

        with ProjectFiles("sqlite+aiosqlite:///files.db", storage="/srv/objects") as pfs:
            pfs.create_folder("p1", "", "Plans", created_by="u1")
            pfs.upload("p1", "site.pdf", data, uploaded_by="u1", folder="Plans")
            listing = pfs.list_directory("p1", "Plans")

    *database* is a SQLAlchemy URL (detected by ``"://"``) or a path to a
    SQLite file.  *storage* is a local directory, ``s3://bucket/prefix``,
    or a pre-built ``ObjectStore``.  Both default to locations under
    ``PROJECTFS_DATA_DIR``.
    """

    def __init__(
        self,
        database: str | None = None,
        *,
        storage: str | Path | ObjectStore | None = None,
        data_dir: str | Path | None = None,
    ) -> None:
        self._closed = False
        self._data_dir = Path(data_dir).expanduser() if data_dir else default_data_dir()

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        try:
            self._async: ProjectFilesAsync = self._run(self._async_init(database, storage))
        except BaseException:
            self._stop_loop()
            raise

    async def _async_init(
        self, database: str | None, storage: str | Path | ObjectStore | None
    ) -> ProjectFilesAsync:
        if storage is None:
            store: Any = open_store(self._data_dir / "objects")
        elif isinstance(storage, (str, Path)):
            store = open_store(storage)
        else:
            store = storage

        url = _database_url(database, self._data_dir)
        engine = create_async_engine(url, echo=False)
        logger.debug(
            "Opening metadata database %s", engine.url.render_as_string(hide_password=True)
        )
        return await ProjectFilesAsync.from_engine(engine, store=store)

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    def close(self) -> None:
        """Close the async facade, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> ProjectFiles:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    def list_directory(self, project_id: str, path: str = ROOT) -> DirectoryListing:
        return self._run(self._async.list_directory(project_id, path))

    def list_folder_paths(self, project_id: str) -> list[str]:
        return self._run(self._async.list_folder_paths(project_id))

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def create_folder(
        self, project_id: str, path: str, name: str, *, created_by: str = ""
    ) -> FolderCreateResult:
        return self._run(self._async.create_folder(project_id, path, name, created_by=created_by))

    def rename_folder(self, project_id: str, old_path: str, new_name: str) -> BatchResult:
        return self._run(self._async.rename_folder(project_id, old_path, new_name))

    def delete_folder(self, project_id: str, path: str) -> int:
        return self._run(self._async.delete_folder(project_id, path))

    def export_folder(self, project_id: str, path: str = ROOT) -> bytes:
        return self._run(self._async.export_folder(project_id, path))

    # ------------------------------------------------------------------
    # Moves, renames, deletes
    # ------------------------------------------------------------------

    def move_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
        destination: str | None = ROOT,
    ) -> BatchResult:
        return self._run(
            self._async.move_entries(project_id, list(file_ids), list(folder_paths), destination)
        )

    def rename_file(self, file_id: str, new_name: str) -> ProjectFileBase:
        return self._run(self._async.rename_file(file_id, new_name))

    def delete_file(self, file_id: str) -> None:
        self._run(self._async.delete_file(file_id))

    def delete_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
    ) -> BatchResult:
        return self._run(
            self._async.delete_entries(project_id, list(file_ids), list(folder_paths))
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def expand_folder_selection(self, project_id: str, path: str) -> list[str]:
        return self._run(self._async.expand_folder_selection(project_id, path))

    def selection(self, project_id: str) -> SelectionModel:
        return self._run(self._async.selection(project_id))

    # ------------------------------------------------------------------
    # Uploads and downloads
    # ------------------------------------------------------------------

    def upload(
        self,
        project_id: str,
        relative_path: str,
        data: bytes,
        *,
        uploaded_by: str = "",
        folder: str | None = ROOT,
        mime_type: str | None = None,
    ) -> ProjectFileBase:
        return self._run(
            self._async.upload(
                project_id,
                relative_path,
                data,
                uploaded_by=uploaded_by,
                folder=folder,
                mime_type=mime_type,
            )
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
        """Start an upload on the private loop.  Use ``wait_for_upload`` to block on it."""
        return self._run(
            _call(
                self._async.begin_upload,
                project_id,
                relative_path,
                data,
                uploaded_by=uploaded_by,
                folder=folder,
                mime_type=mime_type,
            )
        )

    def wait_for_upload(self, handle: UploadHandle) -> ProjectFileBase:
        return self._run(handle.result())

    def cancel_upload(self, upload_id: str) -> bool:
        return self._run(_call(self._async.cancel_upload, upload_id))

    def pending_uploads(self) -> list[UploadHandle]:
        return self._run(_call(self._async.pending_uploads))

    def create_upload_target(
        self, project_id: str, file_name: str, *, uploaded_by: str = "", expires_in: int = 3600
    ) -> UploadTarget:
        return self._run(
            self._async.create_upload_target(
                project_id, file_name, uploaded_by=uploaded_by, expires_in=expires_in
            )
        )

    def complete_upload(
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
        return self._run(
            self._async.complete_upload(
                project_id,
                key,
                relative_path,
                size_bytes=size_bytes,
                uploaded_by=uploaded_by,
                folder=folder,
                mime_type=mime_type,
            )
        )

    def download(self, file_id: str) -> bytes:
        return self._run(self._async.download(file_id))

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def create_share_link(
        self,
        project_id: str,
        *,
        folder_path: str | None = None,
        file_ids: Iterable[str] | None = None,
        created_by: str = "",
    ) -> SharedLinkBase:
        return self._run(
            self._async.create_share_link(
                project_id,
                folder_path=folder_path,
                file_ids=list(file_ids) if file_ids is not None else None,
                created_by=created_by,
            )
        )

    def resolve_share_link(self, share_id: str) -> list[ProjectFileBase]:
        return self._run(self._async.resolve_share_link(share_id))

    def list_share_links(self, project_id: str) -> list[SharedLinkBase]:
        return self._run(self._async.list_share_links(project_id))

    def revoke_share_link(self, share_id: str) -> bool:
        return self._run(self._async.revoke_share_link(share_id))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._async.event_bus

    @property
    def data_dir(self) -> Path:
        return self._data_dir
