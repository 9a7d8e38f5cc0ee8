"""SQLModel database models for projectfs."""

from projectfs.models.files import FileKind, ProjectFile, ProjectFileBase
from projectfs.models.folders import ProjectFolder, ProjectFolderBase
from projectfs.models.shares import SharedLink, SharedLinkBase

__all__ = [
    "FileKind",
    "ProjectFile",
    "ProjectFileBase",
    "ProjectFolder",
    "ProjectFolderBase",
    "SharedLink",
    "SharedLinkBase",
]
