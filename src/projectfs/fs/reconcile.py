"""
Folder reconciler: create folders across two stores without a transaction.

A new folder is made discoverable by a zero-byte placeholder object at
``{project_id}/{folder_path}/.keeper`` plus a sentinel metadata row that
points at it.  The object store and the metadata table cannot be written
atomically, so creation inspects both sides first:

    metadata row | storage object | action
    -------------+----------------+-------------------------------------
    exists       | any            | AlreadyExistsError
    missing      | exists, unused | heal: insert the missing row
    missing      | exists, in use | treated as missing, under a fresh key
    missing      | missing        | AlreadyExistsError if files already
                 |                | imply the folder, else write object
                 |                | then row, deleting the object again
                 |                | if the row insert fails

Every branch is idempotent, so retrying a failed creation converges.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from projectfs.models.files import FileKind

from .exceptions import AlreadyExistsError, StorageError, ValidationError
from .types import FolderCreateResult
from .utils import SENTINEL_NAME, join_path, normalize_path, sentinel_path, validate_name

if TYPE_CHECKING:
    from projectfs.models.files import ProjectFileBase
    from projectfs.storage.protocol import ObjectStore

    from .metadata import MetadataStore

logger = logging.getLogger(__name__)


def sentinel_key(project_id: str, folder_path: str, *, unique: bool = False) -> str:
    """Object key of the placeholder for *folder_path*.

    With *unique*, the name gets a uuid prefix so the key cannot collide
    with a placeholder that still backs another (renamed) folder.
    """
    name = f"{uuid.uuid4()}_{SENTINEL_NAME}" if unique else SENTINEL_NAME
    return f"{project_id}/{normalize_path(folder_path)}/{name}"


class FolderReconciler:
    """Creates folders and heals storage/metadata divergence on the way."""

    def __init__(self, metadata: MetadataStore, store: ObjectStore) -> None:
        self._metadata = metadata
        self._store = store

    async def create_folder(
        self,
        project_id: str,
        parent: str,
        name: str,
        *,
        created_by: str = "",
    ) -> FolderCreateResult:
        """Create folder *name* inside *parent*.

        Raises:
            ValidationError: *name* is empty or contains a separator.
            AlreadyExistsError: The folder already exists, explicitly or
                implied by files below it.
            StorageError: The object store or metadata insert failed.
        """
        ok, error = validate_name(name)
        if not ok:
            raise ValidationError(error)

        folder_path = join_path(parent, name.strip())
        key = sentinel_key(project_id, folder_path)

        if await self._metadata.get_sentinel(project_id, folder_path) is not None:
            raise AlreadyExistsError(folder_path, f"Folder already exists: {folder_path}")
        if await self._metadata.get_folder(project_id, folder_path) is not None:
            raise AlreadyExistsError(folder_path, f"Folder already exists: {folder_path}")

        orphaned = await self._store.exists(key)
        if orphaned and await self._metadata.file_for_key(key) is not None:
            # A renamed folder's placeholder still lives under this path.
            key = sentinel_key(project_id, folder_path, unique=True)
            orphaned = False

        if orphaned:
            # Object survived an earlier run whose row insert never landed.
            sentinel = await self._insert_sentinel(project_id, folder_path, key, created_by)
            logger.info("Healed folder %r: adopted existing object %s", folder_path, key)
            healed = True
        elif await self._metadata.has_content_under(project_id, folder_path):
            raise AlreadyExistsError(folder_path, f"Folder already exists: {folder_path}")
        else:
            sentinel = await self._write_two_phase(project_id, folder_path, key, created_by)
            healed = False

        await self._declare(project_id, folder_path, created_by)
        logger.info("Created folder %r in project %s", folder_path, project_id)
        return FolderCreateResult(path=folder_path, healed=healed, sentinel_id=sentinel.id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _insert_sentinel(
        self, project_id: str, folder_path: str, key: str, created_by: str
    ) -> ProjectFileBase:
        record = self._metadata.file_model(
            project_id=project_id,
            storage_key=key,
            virtual_path=sentinel_path(folder_path),
            size_bytes=0,
            mime_type="text/plain",
            kind=FileKind.SENTINEL,
            uploaded_by=created_by,
        )
        return await self._metadata.insert_file(record)

    async def _write_two_phase(
        self, project_id: str, folder_path: str, key: str, created_by: str
    ) -> ProjectFileBase:
        await self._store.put(key, b"", "text/plain")
        try:
            return await self._insert_sentinel(project_id, folder_path, key, created_by)
        except Exception as e:
            logger.warning(
                "Row insert failed for folder %r; removing placeholder %s", folder_path, key
            )
            try:
                await self._store.delete(key)
            except StorageError:
                logger.error("Compensating delete failed; orphaned object %s", key, exc_info=True)
            raise StorageError(f"Failed to create folder {folder_path}: {e}") from e

    async def _declare(self, project_id: str, folder_path: str, created_by: str) -> None:
        """Write the explicit folder row.  The placeholder already makes the folder visible."""
        try:
            if await self._metadata.get_folder(project_id, folder_path) is None:
                await self._metadata.insert_folder(project_id, folder_path, created_by=created_by)
        except StorageError:
            logger.warning("Could not declare folder %r", folder_path, exc_info=True)
