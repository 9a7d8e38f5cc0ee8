"""Tests for the SQLModel tables and custom table names via the *Base classes."""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from projectfs import ProjectFilesAsync
from projectfs.models import (
    FileKind,
    ProjectFile,
    ProjectFileBase,
    ProjectFolderBase,
    SharedLink,
    SharedLinkBase,
)
from projectfs.storage.memory import MemoryObjectStore

# ---------------------------------------------------------------------------
# Custom model definitions (what a host application would write)
# ---------------------------------------------------------------------------


class SiteFile(ProjectFileBase, table=True):
    __tablename__ = "site_files"


class SiteFolder(ProjectFolderBase, table=True):
    __tablename__ = "site_folders"


class SiteLink(SharedLinkBase, table=True):
    __tablename__ = "site_links"


class TestDefaults:
    def test_file_defaults(self):
        record = ProjectFile(project_id="p1", storage_key="k", virtual_path="Plans/site.pdf")
        assert record.id
        assert record.kind == FileKind.NORMAL
        assert not record.is_deleted
        assert not record.is_sentinel
        assert record.name == "site.pdf"
        assert record.uploaded_at.tzinfo is not None

    def test_sentinel(self):
        record = ProjectFile(
            project_id="p1", storage_key="k", virtual_path="a/.keeper", kind=FileKind.SENTINEL
        )
        assert record.is_sentinel

    def test_share_id_generated(self):
        first = SharedLink(project_id="p1")
        second = SharedLink(project_id="p1")
        assert first.share_id != second.share_id
        assert first.file_ids == []


class TestCustomTables:
    async def test_facade_uses_custom_models(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        pfs = await ProjectFilesAsync.from_engine(
            engine,
            store=MemoryObjectStore(),
            file_model=SiteFile,
            folder_model=SiteFolder,
            link_model=SiteLink,
        )
        try:
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda c: set(inspect(c).get_table_names()))
            assert {"site_files", "site_folders", "site_links"} <= tables
            assert "project_files" not in tables

            await pfs.create_folder("p1", "", "Plans")
            record = await pfs.upload("p1", "site.pdf", b"x", folder="Plans")
            assert isinstance(record, SiteFile)
            assert (await pfs.list_directory("p1", "Plans")).file_names == ["site.pdf"]

            link = await pfs.create_share_link("p1", folder_path="Plans")
            assert isinstance(link, SiteLink)
        finally:
            await pfs.close()
