"""
Mutation engine: rename, move and delete on top of the metadata store.

Objects in storage never move.  Every rename or move rewrites the
``virtual_path`` of the affected file rows; every delete flips their
``is_deleted`` flag.  Batches run strictly one item at a time and never
abort on a per-item failure: the caller gets a ``BatchResult`` listing
what succeeded and why the rest failed.  Only the setup step of a batch
(for example loading the destination's existing names) may raise.

Items in a ``BatchResult`` are file record ids for file rows and folder
paths for folder rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from projectfs.events import EventType, FileEvent

from .conflicts import unique_name
from .exceptions import AlreadyExistsError, NotFoundError, ValidationError
from .types import BatchResult
from .utils import (
    ROOT,
    base_name,
    is_under,
    join_path,
    normalize_path,
    parent_path,
    rebase_path,
    validate_name,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from projectfs.events import EventBus
    from projectfs.models.files import ProjectFileBase

    from .metadata import MetadataStore

logger = logging.getLogger(__name__)


def _require_valid(name: str) -> str:
    ok, error = validate_name(name)
    if not ok:
        raise ValidationError(error)
    return name.strip()


def _require_folder(path: str) -> str:
    folder = normalize_path(path)
    if folder == ROOT:
        raise ValidationError("The project root cannot be renamed, moved or deleted")
    return folder


class MutationEngine:
    """Sequential rename, move and delete over file and folder rows."""

    def __init__(self, metadata: MetadataStore, event_bus: EventBus | None = None) -> None:
        self._metadata = metadata
        self._event_bus = event_bus

    async def _emit(self, event_type: EventType, project_id: str, path: str, **kwargs) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(
                FileEvent(event_type=event_type, project_id=project_id, path=path, **kwargs)
            )

    # =========================================================================
    # Folders
    # =========================================================================

    async def rename_folder(self, project_id: str, old_path: str, new_name: str) -> BatchResult:
        """Rename the folder at *old_path* to *new_name*, keeping its parent.

        Every row strictly below *old_path* has that prefix replaced.
        Rows whose path merely starts with the same characters (``ab/x``
        when renaming ``a``) are untouched.

        Raises:
            ValidationError: *new_name* is invalid or *old_path* is the root.
            AlreadyExistsError: A sibling already uses *new_name*.
            NotFoundError: Nothing lives at *old_path*.
        """
        old = _require_folder(old_path)
        name = _require_valid(new_name)
        new = join_path(parent_path(old), name)
        result = BatchResult()
        if new == old:
            return result

        records = await self._metadata.files_under(project_id, old)
        folders = await self._metadata.folders_within(project_id, old)
        if not records and not folders:
            raise NotFoundError(old, f"Folder not found: {old}")

        if name in await self._metadata.names_in(project_id, parent_path(old)):
            raise AlreadyExistsError(new, f"A sibling named {name!r} already exists")

        await self._rewrite(records, folders, old, new, result)
        logger.info(
            "Renamed folder %r -> %r: %d succeeded, %d failed",
            old, new, len(result.succeeded), len(result.failed),
        )
        if result.succeeded:
            await self._emit(EventType.FOLDER_RENAMED, project_id, new, old_path=old)
        return result

    async def delete_folder(self, project_id: str, path: str) -> int:
        """Soft-delete every row below *path* and drop its folder rows.

        Returns:
            Number of file rows flagged as deleted (placeholders included).

        Raises:
            ValidationError: *path* is the root.
            NotFoundError: Nothing lives at *path*.
        """
        folder = _require_folder(path)
        count = await self._metadata.soft_delete_under(project_id, folder)
        dropped = await self._metadata.delete_folders_within(project_id, folder)
        if count == 0 and dropped == 0:
            raise NotFoundError(folder, f"Folder not found: {folder}")
        logger.info("Deleted folder %r: %d file row(s), %d folder row(s)", folder, count, dropped)
        await self._emit(EventType.FOLDER_DELETED, project_id, folder)
        return count

    async def _rewrite(
        self,
        records: Iterable[ProjectFileBase],
        folders: Iterable,
        old: str,
        new: str,
        result: BatchResult,
    ) -> set[str]:
        """Rebase each row from *old* to *new*, one round trip per row.

        Returns the ids of the file rows that were rewritten.
        """
        moved: set[str] = set()
        for record in records:
            target = rebase_path(record.virtual_path, old, new)
            try:
                await self._metadata.update_path(record.id, target)
            except Exception as e:
                logger.warning(
                    "Failed to move %r to %r", record.virtual_path, target, exc_info=True
                )
                result.record_failure(record.id, e)
                continue
            result.succeeded.append(record.id)
            moved.add(record.id)

        for folder in folders:
            target = rebase_path(folder.folder_path, old, new)
            try:
                await self._metadata.update_folder_path(folder.id, target)
            except Exception as e:
                logger.warning("Failed to move folder row %r", folder.folder_path, exc_info=True)
                result.record_failure(folder.folder_path, e)
                continue
            result.succeeded.append(target)
        return moved

    # =========================================================================
    # Moves
    # =========================================================================

    async def move_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
        destination: str | None = ROOT,
    ) -> BatchResult:
        """Move files and folders into *destination* (``""`` or None = root).

        Folders are processed first and keep their names; a folder whose
        name is already taken at the destination is a per-item failure
        rather than a merge.  Files whose
        name is taken at the destination are renamed ``stem_N.ext``; the
        set of taken names grows after each success so two items of the
        batch never collide with each other.

        Raises:
            StorageError: The destination's existing names could not be loaded.
        """
        dest = normalize_path(destination)
        result = BatchResult()
        existing = await self._metadata.names_in(project_id, dest)
        moved: set[str] = set()

        for folder_path in folder_paths:
            await self._move_folder(
                project_id, normalize_path(folder_path), dest, existing, moved, result
            )

        for file_id in file_ids:
            if file_id in moved:
                # Already carried along with a selected folder.
                continue
            await self._move_file(project_id, file_id, dest, existing, result)

        logger.info(
            "Moved entries to %r: %d succeeded, %d failed",
            dest, len(result.succeeded), len(result.failed),
        )
        return result

    async def _move_folder(
        self,
        project_id: str,
        folder: str,
        dest: str,
        existing: set[str],
        moved: set[str],
        result: BatchResult,
    ) -> None:
        if folder == ROOT:
            result.record_failure(folder, "The project root cannot be moved")
            return
        if dest == folder or is_under(dest, folder):
            result.record_failure(folder, "Cannot move a folder into itself")
            return

        target = join_path(dest, base_name(folder))
        if target == folder:
            result.succeeded.append(folder)
            return
        if base_name(folder) in existing:
            # Folders never merge.
            result.record_failure(
                folder, AlreadyExistsError(target, f"{target} already exists at the destination")
            )
            return

        try:
            records = await self._metadata.files_under(project_id, folder)
            folders = await self._metadata.folders_within(project_id, folder)
        except Exception as e:
            logger.warning("Failed to load contents of %r", folder, exc_info=True)
            result.record_failure(folder, e)
            return
        if not records and not folders:
            result.record_failure(folder, NotFoundError(folder, f"Folder not found: {folder}"))
            return

        moved.update(await self._rewrite(records, folders, folder, target, result))
        existing.add(base_name(folder))
        await self._emit(EventType.FOLDER_MOVED, project_id, target, old_path=folder)

    async def _move_file(
        self,
        project_id: str,
        file_id: str,
        dest: str,
        existing: set[str],
        result: BatchResult,
    ) -> None:
        try:
            record = await self._metadata.get_file(file_id)
        except Exception as e:
            logger.warning("Failed to load file %s", file_id, exc_info=True)
            result.record_failure(file_id, e)
            return
        if record is None or record.project_id != project_id:
            result.record_failure(file_id, NotFoundError(file_id, f"File not found: {file_id}"))
            return

        old = record.virtual_path
        if parent_path(old) == dest:
            result.succeeded.append(file_id)
            return

        name = unique_name(record.name, existing)
        target = join_path(dest, name)
        try:
            await self._metadata.update_path(file_id, target)
        except Exception as e:
            existing.discard(name)
            logger.warning("Failed to move %r to %r", old, target, exc_info=True)
            result.record_failure(file_id, e)
            return
        result.succeeded.append(file_id)
        await self._emit(EventType.FILE_MOVED, project_id, target, old_path=old, file_id=file_id)

    # =========================================================================
    # Files
    # =========================================================================

    async def rename_file(self, file_id: str, new_name: str) -> ProjectFileBase:
        """Rename one file in place.

        Raises:
            ValidationError: *new_name* is invalid.
            NotFoundError: The record is gone or deleted.
            AlreadyExistsError: A sibling already uses *new_name*.
        """
        name = _require_valid(new_name)
        record = await self._metadata.get_file(file_id)
        if record is None:
            raise NotFoundError(file_id, f"File not found: {file_id}")

        old = record.virtual_path
        folder = parent_path(old)
        target = join_path(folder, name)
        if target == old:
            return record
        if name in await self._metadata.names_in(record.project_id, folder):
            raise AlreadyExistsError(target, f"A sibling named {name!r} already exists")

        updated = await self._metadata.update_path(file_id, target)
        logger.info("Renamed file %r -> %r", old, target)
        await self._emit(
            EventType.FILE_RENAMED, record.project_id, target, old_path=old, file_id=file_id
        )
        return updated

    async def delete_file(self, file_id: str) -> ProjectFileBase:
        """Soft-delete one file.  The stored object is left in place.

        Raises:
            NotFoundError: The record is gone or already deleted.
        """
        record = await self._metadata.soft_delete(file_id)
        logger.info("Deleted file %r", record.virtual_path)
        await self._emit(
            EventType.FILE_DELETED, record.project_id, record.virtual_path, file_id=file_id
        )
        return record

    async def delete_entries(
        self,
        project_id: str,
        file_ids: Iterable[str] = (),
        folder_paths: Iterable[str] = (),
    ) -> BatchResult:
        """Delete folders, then files, collecting per-item outcomes.

        Folders go first, parents before children.  A selected folder or
        file that an enclosing folder of the same batch already removed is
        reported as a success, not as a stale reference.
        """
        result = BatchResult()
        deleted: list[str] = []
        for folder in sorted({normalize_path(p) for p in folder_paths}):
            try:
                await self.delete_folder(project_id, folder)
            except NotFoundError as e:
                if any(is_under(folder, done) for done in deleted):
                    result.succeeded.append(folder)
                    continue
                logger.warning("Failed to delete folder %r", folder, exc_info=True)
                result.record_failure(folder, e)
                continue
            except Exception as e:
                logger.warning("Failed to delete folder %r", folder, exc_info=True)
                result.record_failure(folder, e)
                continue
            deleted.append(folder)
            result.succeeded.append(folder)

        for file_id in file_ids:
            try:
                await self.delete_file(file_id)
            except NotFoundError as e:
                if await self._removed_with(file_id, deleted):
                    result.succeeded.append(file_id)
                    continue
                logger.warning("Failed to delete file %s", file_id, exc_info=True)
                result.record_failure(file_id, e)
                continue
            except Exception as e:
                logger.warning("Failed to delete file %s", file_id, exc_info=True)
                result.record_failure(file_id, e)
                continue
            result.succeeded.append(file_id)

        logger.info(
            "Deleted entries in %s: %d succeeded, %d failed",
            project_id, len(result.succeeded), len(result.failed),
        )
        return result

    async def _removed_with(self, file_id: str, folders: list[str]) -> bool:
        """True if *file_id* was soft-deleted along with one of *folders*."""
        if not folders:
            return False
        record = await self._metadata.get_file(file_id, include_deleted=True)
        return (
            record is not None
            and record.is_deleted
            and any(is_under(record.virtual_path, folder) for folder in folders)
        )
