"""
Tri-state selection over the derived folder tree.

Only file ids are stored.  A folder's checkbox state is computed from
how many of its descendant files are selected, so deselecting a single
file demotes every enclosing folder from checked to indeterminate with
no bookkeeping.  Empty folders have no descendants; selecting one is
remembered by path so bulk delete and move can still act on it.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .index import files_under
from .utils import is_under, normalize_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from projectfs.models.files import ProjectFileBase


class CheckState(Enum):
    CHECKED = "checked"
    INDETERMINATE = "indeterminate"
    UNCHECKED = "unchecked"


def expand_folder_selection(folder_path: str, files: Iterable[ProjectFileBase]) -> list[str]:
    """Ids of every non-deleted, non-placeholder file below *folder_path*."""
    return [record.id for record in files_under(folder_path, files)]


class SelectionModel:
    """
    A live selection of files and folders within one project.

    USAGE:
        selection = SelectionModel(records)
        selection.select_folder("Plans")
        selection.deselect_file(site_pdf_id)
        selection.folder_state("Plans")  # CheckState.INDETERMINATE

    The model holds a snapshot of the records it was built from.  Call
    ``refresh`` after mutations to rebase it on current rows; ids that no
    longer exist are dropped.
    """

    def __init__(self, files: Iterable[ProjectFileBase] = ()) -> None:
        self._files: list[ProjectFileBase] = []
        self._ids: set[str] = set()
        self._file_ids: set[str] = set()
        self._folder_paths: set[str] = set()
        self.refresh(files)

    def refresh(self, files: Iterable[ProjectFileBase]) -> None:
        self._files = [f for f in files if not f.is_deleted and not f.is_sentinel]
        self._ids = {f.id for f in self._files}
        self._file_ids &= self._ids

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def select_file(self, file_id: str) -> None:
        if file_id in self._ids:
            self._file_ids.add(file_id)

    def deselect_file(self, file_id: str) -> None:
        self._file_ids.discard(file_id)
        record = next((f for f in self._files if f.id == file_id), None)
        if record is not None:
            path = normalize_path(record.virtual_path)
            self._folder_paths = {p for p in self._folder_paths if not is_under(path, p)}

    def toggle_file(self, file_id: str) -> bool:
        """Flip one file.  Returns True if it is now selected."""
        if file_id in self._file_ids:
            self.deselect_file(file_id)
            return False
        self.select_file(file_id)
        return file_id in self._file_ids

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def expand_folder(self, folder_path: str) -> list[str]:
        return expand_folder_selection(folder_path, self._files)

    def select_folder(self, folder_path: str) -> None:
        folder = normalize_path(folder_path)
        self._file_ids.update(self.expand_folder(folder))
        self._folder_paths.add(folder)

    def deselect_folder(self, folder_path: str) -> None:
        folder = normalize_path(folder_path)
        self._file_ids.difference_update(self.expand_folder(folder))
        self._folder_paths = {
            p for p in self._folder_paths if p != folder and not is_under(p, folder)
        }

    def toggle_folder(self, folder_path: str) -> CheckState:
        """Check an unchecked or indeterminate folder, uncheck a checked one."""
        if self.folder_state(folder_path) is CheckState.CHECKED:
            self.deselect_folder(folder_path)
        else:
            self.select_folder(folder_path)
        return self.folder_state(folder_path)

    def folder_state(self, folder_path: str) -> CheckState:
        folder = normalize_path(folder_path)
        descendants = self.expand_folder(folder)
        if not descendants:
            return CheckState.CHECKED if folder in self._folder_paths else CheckState.UNCHECKED

        selected = sum(1 for file_id in descendants if file_id in self._file_ids)
        if selected == len(descendants):
            return CheckState.CHECKED
        if selected:
            return CheckState.INDETERMINATE
        return CheckState.UNCHECKED

    # ------------------------------------------------------------------
    # Whole selection
    # ------------------------------------------------------------------

    def select_all(self) -> None:
        self._file_ids = set(self._ids)

    def clear(self) -> None:
        self._file_ids.clear()
        self._folder_paths.clear()

    @property
    def selected_file_ids(self) -> set[str]:
        return set(self._file_ids)

    @property
    def selected_folder_paths(self) -> set[str]:
        """Folders selected as a whole and still fully checked."""
        return {p for p in self._folder_paths if self.folder_state(p) is CheckState.CHECKED}

    def __len__(self) -> int:
        return len(self._file_ids)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._file_ids
