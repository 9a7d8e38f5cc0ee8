"""projectfs: a virtual folder hierarchy for project files.

Flat object storage plus a flat metadata table, presented as folders you
can browse, rename, move, delete, select, upload into and share.
"""

__version__ = "0.1.0"

from projectfs._projectfs import ProjectFiles
from projectfs._projectfs_async import ProjectFilesAsync
from projectfs.events import EventBus, EventType, FileEvent
from projectfs.fs.exceptions import (
    AlreadyExistsError,
    ConsistencyError,
    NotFoundError,
    ProjectFSError,
    StorageError,
    ValidationError,
)
from projectfs.fs.selection import CheckState, SelectionModel
from projectfs.fs.types import (
    BatchResult,
    DirectoryListing,
    FailedItem,
    FolderCreateResult,
    UploadTarget,
    VirtualNode,
)
from projectfs.fs.uploads import UploadHandle
from projectfs.models import (
    FileKind,
    ProjectFile,
    ProjectFileBase,
    ProjectFolder,
    ProjectFolderBase,
    SharedLink,
    SharedLinkBase,
)
from projectfs.storage import LocalObjectStore, MemoryObjectStore, ObjectStore, open_store

__all__ = [
    "AlreadyExistsError",
    "BatchResult",
    "CheckState",
    "ConsistencyError",
    "DirectoryListing",
    "EventBus",
    "EventType",
    "FailedItem",
    "FileEvent",
    "FileKind",
    "FolderCreateResult",
    "LocalObjectStore",
    "MemoryObjectStore",
    "NotFoundError",
    "ObjectStore",
    "ProjectFSError",
    "ProjectFile",
    "ProjectFileBase",
    "ProjectFiles",
    "ProjectFilesAsync",
    "ProjectFolder",
    "ProjectFolderBase",
    "SelectionModel",
    "SharedLink",
    "SharedLinkBase",
    "StorageError",
    "UploadHandle",
    "UploadTarget",
    "ValidationError",
    "VirtualNode",
    "__version__",
    "open_store",
]
