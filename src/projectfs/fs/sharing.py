"""SharingService: time-limited links to a folder or a set of files.

A link stores what it points at, not a copy of it.  Resolving a folder
link lists the folder's files as they are now, so files moved out of the
folder after sharing are no longer reachable through the link.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlmodel import select

from projectfs.models.shares import SharedLink

from .exceptions import NotFoundError, ValidationError
from .metadata import unit_of_work
from .utils import ROOT, normalize_path

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from projectfs.models.files import ProjectFileBase
    from projectfs.models.shares import SharedLinkBase

    from .metadata import MetadataStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 7


def default_ttl() -> timedelta:
    """Link lifetime from ``PROJECTFS_SHARE_TTL_DAYS`` (default 7 days)."""
    raw = os.environ.get("PROJECTFS_SHARE_TTL_DAYS")
    if not raw:
        return timedelta(days=DEFAULT_TTL_DAYS)
    try:
        days = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid PROJECTFS_SHARE_TTL_DAYS=%r", raw)
        return timedelta(days=DEFAULT_TTL_DAYS)
    return timedelta(days=days)


def _is_expired(link: SharedLinkBase, now: datetime) -> bool:
    if link.expires_at is None:
        return False
    exp = link.expires_at
    # SQLite hands back naive datetimes
    if exp.tzinfo is None:
        exp = exp.replace(tzinfo=UTC)
    return exp <= now


class SharingService:
    """Creates and resolves share links.

    Constructor receives the concrete link model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        metadata: MetadataStore,
        *,
        link_model: type[SharedLinkBase] | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._metadata = metadata
        self._link_model: Any = link_model or SharedLink
        self.ttl = ttl if ttl is not None else default_ttl()

    async def create_link(
        self,
        project_id: str,
        *,
        folder_path: str | None = None,
        file_ids: Iterable[str] | None = None,
        created_by: str = "",
    ) -> SharedLinkBase:
        """Share either a folder or an explicit list of files.

        Raises:
            ValidationError: Neither or both targets were given, or the
                folder is the project root.
        """
        ids = list(file_ids or [])
        if (folder_path is None) == (not ids):
            raise ValidationError("Share exactly one of a folder or a list of files")

        folder = None
        if folder_path is not None:
            folder = normalize_path(folder_path)
            if folder == ROOT:
                raise ValidationError("The project root cannot be shared")

        link = self._link_model(
            share_type="folder" if folder is not None else "files",
            project_id=project_id,
            folder_path=folder,
            file_ids=ids,
            created_by=created_by,
            expires_at=datetime.now(UTC) + self.ttl,
        )
        async with unit_of_work(self._session_factory) as session:
            session.add(link)
        logger.info(
            "Created %s share %s in project %s", link.share_type, link.share_id, project_id
        )
        return link

    async def get_link(self, share_id: str) -> SharedLinkBase:
        """Return a live link.

        Raises:
            NotFoundError: The link is unknown or has expired.
        """
        model = self._link_model
        async with unit_of_work(self._session_factory) as session:
            result = await session.execute(select(model).where(model.share_id == share_id))
            link = result.scalars().first()
        if link is None or _is_expired(link, datetime.now(UTC)):
            raise NotFoundError(share_id, "Share link is invalid or has expired")
        return link

    async def resolve_link(self, share_id: str) -> list[ProjectFileBase]:
        """Files currently reachable through a link, in path order."""
        link = await self.get_link(share_id)
        if link.share_type == "folder":
            records = await self._metadata.files_under(link.project_id, link.folder_path or ROOT)
        else:
            records = []
            for file_id in link.file_ids:
                record = await self._metadata.get_file(file_id)
                if record is not None and record.project_id == link.project_id:
                    records.append(record)
        files = [r for r in records if not r.is_sentinel]
        files.sort(key=lambda r: r.virtual_path)
        return files

    async def list_links(
        self, project_id: str, *, include_expired: bool = False
    ) -> list[SharedLinkBase]:
        model = self._link_model
        async with unit_of_work(self._session_factory) as session:
            result = await session.execute(select(model).where(model.project_id == project_id))
            links = list(result.scalars().all())
        if include_expired:
            return links
        now = datetime.now(UTC)
        return [link for link in links if not _is_expired(link, now)]

    async def revoke_link(self, share_id: str) -> bool:
        """Delete a link.  Returns True if it existed."""
        model = self._link_model
        async with unit_of_work(self._session_factory) as session:
            result = await session.execute(select(model).where(model.share_id == share_id))
            link = result.scalars().first()
            if link is None:
                return False
            await session.delete(link)
        logger.info("Revoked share %s", share_id)
        return True
