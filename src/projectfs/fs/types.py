"""Result and value types for projectfs operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from projectfs.models.files import ProjectFileBase


NodeType = Literal["file", "folder"]


@dataclass(frozen=True, slots=True)
class VirtualNode:
    """One entry of a directory listing.  Computed, never persisted.

    Attributes:
        type: ``"file"`` or ``"folder"``.
        name: Last path segment.
        path: Full normalized virtual path.
        file_id: Record id for files, None for folders.
    """

    type: NodeType
    name: str
    path: str
    file_id: str | None = None


@dataclass
class DirectoryListing:
    """Children of a single folder level, folders first."""

    path: str
    folders: list[VirtualNode] = field(default_factory=list)
    files: list[VirtualNode] = field(default_factory=list)
    records: dict[str, ProjectFileBase] = field(default_factory=dict, repr=False)
    """File records by id for the entries in ``files``."""

    @property
    def folder_names(self) -> list[str]:
        return [node.name for node in self.folders]

    @property
    def file_names(self) -> list[str]:
        return [node.name for node in self.files]

    @property
    def entries(self) -> list[VirtualNode]:
        return [*self.folders, *self.files]


@dataclass(frozen=True, slots=True)
class FailedItem:
    """A batch item that could not be processed, with the reason."""

    item: str
    reason: str


@dataclass
class BatchResult:
    """Aggregate outcome of a sequential batch operation.

    Partial success is a normal outcome: ``failed`` lists each item that
    could not be processed together with the reason.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def message(self) -> str:
        if not self.failed:
            return f"{len(self.succeeded)} item(s) succeeded"
        reasons = "; ".join(f"{f.item}: {f.reason}" for f in self.failed)
        return f"{len(self.succeeded)} succeeded, {len(self.failed)} failed ({reasons})"

    def record_failure(self, item: str, reason: str | BaseException) -> None:
        self.failed.append(FailedItem(item=item, reason=str(reason) or type(reason).__name__))


@dataclass(frozen=True, slots=True)
class FolderCreateResult:
    """Outcome of a successful folder creation."""

    path: str
    healed: bool = False
    """True when a pre-existing storage object was adopted instead of written."""
    sentinel_id: str | None = None


@dataclass(frozen=True, slots=True)
class UploadTarget:
    """A place a client can upload bytes to directly, bypassing the service."""

    key: str
    url: str
    method: str = "PUT"
    expires_in: int = 3600
    headers: dict[str, str] = field(default_factory=dict)
