"""Exception hierarchy for projectfs operations."""

from __future__ import annotations


class ProjectFSError(Exception):
    """Base class for every error raised by projectfs."""


class ValidationError(ProjectFSError, ValueError):
    """A user-supplied name or path was rejected before any I/O happened."""


class AlreadyExistsError(ProjectFSError):
    """The target folder or file name is already taken."""

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or f"Already exists: {path}")


class NotFoundError(ProjectFSError):
    """A referenced record or object no longer exists (stale reference)."""

    def __init__(self, ref: str, message: str | None = None) -> None:
        self.ref = ref
        super().__init__(message or f"Not found: {ref}")


class StorageError(ProjectFSError):
    """The object store or metadata store failed."""


class ConsistencyError(ProjectFSError):
    """Metadata and object storage disagree in a way that cannot be healed."""
