"""ProjectFolder model: explicit declaration of a folder.

Folders holding at least one file are discoverable from file path
prefixes alone; this table exists so an empty folder still lists.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ProjectFolderBase(SQLModel):
    """Base fields for a folder declaration. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    project_id: str = Field(index=True)
    folder_name: str = Field(default="")
    folder_path: str = Field(index=True)
    parent_path: str = Field(default="", index=True)
    created_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ProjectFolder(ProjectFolderBase, table=True):
    """Default folder table: ``project_folders``."""

    __tablename__ = "project_folders"
