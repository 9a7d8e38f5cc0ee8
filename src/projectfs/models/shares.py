"""SharedLink model: time-limited links to a folder or a set of files.

Provides ``SharedLinkBase`` (non-table) and ``SharedLink`` (concrete table).
Subclass ``SharedLinkBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class SharedLinkBase(SQLModel):
    """Base fields for a share link record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    share_id: str = Field(
        default_factory=lambda: secrets.token_urlsafe(12), index=True, unique=True
    )
    share_type: str = Field(default="folder")
    project_id: str = Field(index=True)
    folder_path: str | None = Field(default=None)
    file_ids: list[str] = Field(
        default_factory=list,
        sa_type=JSON,  # type: ignore[invalid-argument-type]
    )
    created_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class SharedLink(SharedLinkBase, table=True):
    """Default share link table: ``shared_links``."""

    __tablename__ = "shared_links"
