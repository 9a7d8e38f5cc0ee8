"""ProjectFile model: one metadata row per stored object.

Provides ``ProjectFileBase`` (non-table) and ``ProjectFile`` (concrete table).
Subclass ``ProjectFileBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.

``virtual_path`` is the only field that places a file in the folder
hierarchy.  Renames and moves rewrite it; ``storage_key`` never changes
after upload, so the physical object never moves.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileKind(str, Enum):
    """Distinguishes user files from folder placeholders."""

    NORMAL = "normal"
    SENTINEL = "sentinel"


class ProjectFileBase(SQLModel):
    """Base fields for a stored file. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    project_id: str = Field(index=True)
    storage_key: str = Field(index=True)
    virtual_path: str = Field(index=True)
    size_bytes: int = Field(default=0)
    mime_type: str = Field(default="application/octet-stream")
    kind: FileKind = Field(default=FileKind.NORMAL)
    uploaded_by: str = Field(default="")
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    is_deleted: bool = Field(default=False, index=True)

    @property
    def name(self) -> str:
        return self.virtual_path.rsplit("/", 1)[-1]

    @property
    def is_sentinel(self) -> bool:
        return self.kind == FileKind.SENTINEL


class ProjectFile(ProjectFileBase, table=True):
    """Default file table: ``project_files``."""

    __tablename__ = "project_files"
