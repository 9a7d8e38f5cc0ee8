"""
Folder index: derive one directory level from flat records.

Nothing about folders is stored except optional empty-folder
declarations.  Every listing is recomputed from the file records'
virtual paths plus the explicit folder records, so the hierarchy can
never drift from the rows it is derived from.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .types import DirectoryListing, VirtualNode
from .utils import ROOT, SEPARATOR, is_under, join_path, normalize_path, parent_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from projectfs.models.files import ProjectFileBase
    from projectfs.models.folders import ProjectFolderBase

logger = logging.getLogger(__name__)


def _sort_key(node: VirtualNode) -> tuple[str, str]:
    return (node.name.lower(), node.name)


def _remainder(path: str, current: str) -> str | None:
    """Path relative to *current*, or None if *path* is not inside it."""
    if current == ROOT:
        return path or None
    if not is_under(path, current):
        return None
    return path[len(current) + 1:]


def build_listing(
    current_path: str,
    files: Iterable[ProjectFileBase],
    folders: Iterable[ProjectFolderBase] = (),
) -> DirectoryListing:
    """Return the direct children of *current_path*.

    Args:
        current_path: Folder to list (``""`` for the project root).
        files: Non-deleted file records of the project.  Deleted records
            are skipped if present.
        folders: Explicit folder records of the project.

    Returns:
        DirectoryListing with child folders first, then direct files, each
        sorted case-insensitively by name.  Placeholder records never
        appear as files but still make their folder visible.
    """
    current = normalize_path(current_path)
    folder_names: set[str] = set()
    file_nodes: list[VirtualNode] = []
    records: dict[str, ProjectFileBase] = {}

    for record in files:
        if record.is_deleted:
            continue
        path = normalize_path(record.virtual_path)
        remainder = _remainder(path, current)
        if remainder is None:
            continue

        if SEPARATOR not in remainder:
            if record.is_sentinel:
                continue
            file_nodes.append(
                VirtualNode(type="file", name=remainder, path=path, file_id=record.id)
            )
            records[record.id] = record
        else:
            folder_names.add(remainder.split(SEPARATOR, 1)[0])

    # Explicit declarations make empty folders visible.  A declaration
    # deeper than one level still contributes its top segment.
    for folder in folders:
        remainder = _remainder(normalize_path(folder.folder_path), current)
        if remainder is None:
            continue
        folder_names.add(remainder.split(SEPARATOR, 1)[0])

    folder_nodes = [
        VirtualNode(type="folder", name=name, path=join_path(current, name))
        for name in folder_names
    ]
    folder_nodes.sort(key=_sort_key)
    file_nodes.sort(key=_sort_key)

    logger.debug(
        "Listed %r: %d folder(s), %d file(s)", current, len(folder_nodes), len(file_nodes)
    )
    return DirectoryListing(path=current, folders=folder_nodes, files=file_nodes, records=records)


def folder_paths(
    files: Iterable[ProjectFileBase],
    folders: Iterable[ProjectFolderBase] = (),
) -> list[str]:
    """Every folder path implied by file prefixes or declared explicitly, sorted."""
    paths: set[str] = set()

    def _add_ancestors(path: str) -> None:
        while path != ROOT and path not in paths:
            paths.add(path)
            path = parent_path(path)

    for record in files:
        if record.is_deleted:
            continue
        _add_ancestors(parent_path(normalize_path(record.virtual_path)))
    for folder in folders:
        _add_ancestors(normalize_path(folder.folder_path))

    return sorted(paths, key=lambda p: (p.lower(), p))


def files_under(
    folder_path: str,
    files: Iterable[ProjectFileBase],
    *,
    include_sentinels: bool = False,
) -> list[ProjectFileBase]:
    """All non-deleted records at any depth below *folder_path*."""
    folder = normalize_path(folder_path)
    return [
        record
        for record in files
        if not record.is_deleted
        and (include_sentinels or not record.is_sentinel)
        and is_under(normalize_path(record.virtual_path), folder)
    ]
