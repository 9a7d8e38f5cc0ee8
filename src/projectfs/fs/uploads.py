"""
Uploads: bytes to the object store, then a metadata row.

Each upload is a two-phase write with no cross-store transaction.  If the
metadata insert fails after the object landed, the object is left behind
and the failure surfaces as ``StorageError``.

Background uploads run as one ``asyncio.Task`` each, keyed by an upload
id.  Cancelling one drops its pending entry; bytes already written to
the store stay there.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from projectfs.events import EventType, FileEvent

from .conflicts import unique_name
from .exceptions import NotFoundError, StorageError, ValidationError
from .utils import (
    SEPARATOR,
    base_name,
    guess_mime_type,
    join_path,
    normalize_path,
    parent_path,
    validate_name,
)

if TYPE_CHECKING:
    from projectfs.events import EventBus
    from projectfs.models.files import ProjectFileBase
    from projectfs.storage.protocol import ObjectStore

    from .metadata import MetadataStore
    from .types import UploadTarget

logger = logging.getLogger(__name__)


def storage_key(uploaded_by: str, project_id: str, file_name: str) -> str:
    """Immutable object key for a new upload.  Never derived from the folder."""
    return f"{uploaded_by or 'anonymous'}/{project_id}/{uuid.uuid4()}_{file_name}"


def _validated_path(folder: str | None, relative_path: str) -> str:
    """Join *folder* and *relative_path*, validating every new segment."""
    relative = normalize_path(relative_path)
    if not relative:
        raise ValidationError("Upload path cannot be empty")
    for segment in relative.split(SEPARATOR):
        ok, error = validate_name(segment)
        if not ok:
            raise ValidationError(error)
    return join_path(folder, relative)


@dataclass
class UploadHandle:
    """An in-flight background upload."""

    upload_id: str
    project_id: str
    path: str
    task: asyncio.Task = field(repr=False)

    def cancel(self) -> bool:
        return self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> ProjectFileBase:
        """Wait for the upload and return its metadata row."""
        return await self.task


class UploadManager:
    """
    Writes uploads and tracks the ones running in the background.

    USAGE:
        uploads = UploadManager(metadata, store)
        record = await uploads.upload("p1", "Plans/site.pdf", data, uploaded_by="u1")

        handle = uploads.begin_upload("p1", "big.dwg", data, uploaded_by="u1")
        uploads.cancel_upload(handle.upload_id)
    """

    def __init__(
        self,
        metadata: MetadataStore,
        store: ObjectStore,
        event_bus: EventBus | None = None,
    ) -> None:
        self._metadata = metadata
        self._store = store
        self._event_bus = event_bus
        self._pending: dict[str, UploadHandle] = {}

    async def upload(
        self,
        project_id: str,
        relative_path: str,
        data: bytes,
        *,
        uploaded_by: str = "",
        folder: str | None = "",
        mime_type: str | None = None,
    ) -> ProjectFileBase:
        """Store *data* at ``folder/relative_path``.

        Sub-folders in *relative_path* are kept, so uploading a whole
        directory reproduces its structure.  A name already taken in the
        target folder gets a ``_N`` suffix.

        Raises:
            ValidationError: A path segment is invalid.
            StorageError: The object write or the metadata insert failed.
        """
        path = _validated_path(folder, relative_path)
        parent = parent_path(path)
        existing = await self._metadata.names_in(project_id, parent)
        name = unique_name(base_name(path), existing)
        return await self._write(
            project_id,
            join_path(parent, name),
            data,
            uploaded_by=uploaded_by,
            mime_type=mime_type or guess_mime_type(name),
        )

    async def _write(
        self,
        project_id: str,
        path: str,
        data: bytes,
        *,
        uploaded_by: str,
        mime_type: str,
    ) -> ProjectFileBase:
        key = storage_key(uploaded_by, project_id, base_name(path))
        await self._store.put(key, data, mime_type)
        logger.debug("Stored %d byte(s) at %s", len(data), key)

        record = self._metadata.file_model(
            project_id=project_id,
            storage_key=key,
            virtual_path=path,
            size_bytes=len(data),
            mime_type=mime_type,
            uploaded_by=uploaded_by,
        )
        try:
            record = await self._metadata.insert_file(record)
        except StorageError:
            logger.warning("Metadata insert failed for %r; object %s is orphaned", path, key)
            raise

        logger.info("Uploaded %r (%d bytes) to project %s", path, len(data), project_id)
        await self._announce(record)
        return record

    async def _announce(self, record: ProjectFileBase) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(
                FileEvent(
                    event_type=EventType.FILE_UPLOADED,
                    project_id=record.project_id,
                    path=record.virtual_path,
                    file_id=record.id,
                    user_id=record.uploaded_by or None,
                )
            )

    # ------------------------------------------------------------------
    # Background uploads
    # ------------------------------------------------------------------

    def begin_upload(
        self,
        project_id: str,
        relative_path: str,
        data: bytes,
        *,
        uploaded_by: str = "",
        folder: str | None = "",
        mime_type: str | None = None,
    ) -> UploadHandle:
        """Start an upload as its own task and return a cancellable handle.

        Must be called from a running event loop.
        """
        upload_id = str(uuid.uuid4())
        task = asyncio.create_task(
            self.upload(
                project_id,
                relative_path,
                data,
                uploaded_by=uploaded_by,
                folder=folder,
                mime_type=mime_type,
            ),
            name=f"upload-{upload_id}",
        )
        handle = UploadHandle(
            upload_id=upload_id,
            project_id=project_id,
            path=join_path(folder, relative_path),
            task=task,
        )
        self._pending[upload_id] = handle
        task.add_done_callback(lambda t: self._finished(upload_id, t))
        return handle

    def _finished(self, upload_id: str, task: asyncio.Task) -> None:
        handle = self._pending.pop(upload_id, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and handle is not None:
            logger.warning("Upload %s of %r failed: %s", upload_id, handle.path, error)

    def cancel_upload(self, upload_id: str) -> bool:
        """Cancel a pending upload.  Returns False if it is unknown or finished."""
        handle = self._pending.pop(upload_id, None)
        if handle is None:
            return False
        cancelled = handle.cancel()
        logger.info("Cancelled upload %s of %r", upload_id, handle.path)
        return cancelled

    def pending_uploads(self) -> list[UploadHandle]:
        return list(self._pending.values())

    # ------------------------------------------------------------------
    # Direct uploads
    # ------------------------------------------------------------------

    async def create_upload_target(
        self,
        project_id: str,
        file_name: str,
        *,
        uploaded_by: str = "",
        expires_in: int = 3600,
    ) -> UploadTarget:
        """Reserve a key a client can upload to without passing the bytes through."""
        ok, error = validate_name(file_name)
        if not ok:
            raise ValidationError(error)
        key = storage_key(uploaded_by, project_id, file_name.strip())
        return await self._store.create_upload_target(key, expires_in=expires_in)

    async def complete_upload(
        self,
        project_id: str,
        key: str,
        relative_path: str,
        *,
        size_bytes: int,
        uploaded_by: str = "",
        folder: str | None = "",
        mime_type: str | None = None,
    ) -> ProjectFileBase:
        """Insert the metadata row for an object a client uploaded directly.

        Raises:
            NotFoundError: Nothing was uploaded at *key*.
        """
        if not await self._store.exists(key):
            raise NotFoundError(key, f"No uploaded object at {key}")

        path = _validated_path(folder, relative_path)
        parent = parent_path(path)
        name = unique_name(base_name(path), await self._metadata.names_in(project_id, parent))
        path = join_path(parent, name)
        record = self._metadata.file_model(
            project_id=project_id,
            storage_key=key,
            virtual_path=path,
            size_bytes=size_bytes,
            mime_type=mime_type or guess_mime_type(name),
            uploaded_by=uploaded_by,
        )
        record = await self._metadata.insert_file(record)
        logger.info("Registered direct upload %r in project %s", path, project_id)
        await self._announce(record)
        return record
