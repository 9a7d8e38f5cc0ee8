"""End-to-end tests for ProjectFilesAsync."""

from __future__ import annotations

import io
import zipfile

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from projectfs import (
    AlreadyExistsError,
    CheckState,
    ConsistencyError,
    EventType,
    FileEvent,
    MemoryObjectStore,
    NotFoundError,
    ProjectFilesAsync,
)


@pytest.fixture
def events(pfs: ProjectFilesAsync) -> list[FileEvent]:
    seen: list[FileEvent] = []

    async def _record(event: FileEvent) -> None:
        seen.append(event)

    for event_type in EventType:
        pfs.event_bus.register(event_type, _record)
    return seen


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


class TestFromEngine:
    async def test_creates_tables(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        async with await ProjectFilesAsync.from_engine(engine, store=MemoryObjectStore()) as pfs:
            await pfs.create_folder("p1", "", "Plans")
            listing = await pfs.list_directory("p1")
            assert listing.folder_names == ["Plans"]


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


class TestBrowsing:
    async def test_plans_scenario(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "site.pdf", b"s", folder="Plans")
        await pfs.upload("p1", "east.pdf", b"e", folder="Plans/Elevations")

        root = await pfs.list_directory("p1", "")
        assert (root.folder_names, root.file_names) == (["Plans"], [])
        plans = await pfs.list_directory("p1", "Plans")
        assert (plans.folder_names, plans.file_names) == (["Elevations"], ["site.pdf"])
        elevations = await pfs.list_directory("p1", "Plans/Elevations")
        assert (elevations.folder_names, elevations.file_names) == ([], ["east.pdf"])

    async def test_empty_folder_lists(self, pfs: ProjectFilesAsync):
        await pfs.create_folder("p1", "", "Photos")
        listing = await pfs.list_directory("p1")
        assert listing.folder_names == ["Photos"]
        assert (await pfs.list_directory("p1", "Photos")).entries == []

    async def test_list_folder_paths(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "east.pdf", b"e", folder="Plans/Elevations")
        await pfs.create_folder("p1", "", "Photos")
        assert await pfs.list_folder_paths("p1") == ["Photos", "Plans", "Plans/Elevations"]

    async def test_projects_isolated(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "a.txt", b"a")
        await pfs.upload("p2", "b.txt", b"b")
        assert (await pfs.list_directory("p1")).file_names == ["a.txt"]


# ---------------------------------------------------------------------------
# Folder lifecycle
# ---------------------------------------------------------------------------


class TestFolderLifecycle:
    async def test_create_rename_delete(self, pfs: ProjectFilesAsync, events: list[FileEvent]):
        await pfs.create_folder("p1", "", "a", created_by="u1")
        await pfs.upload("p1", "x.txt", b"x", folder="a")
        await pfs.upload("p1", "z.txt", b"z", folder="ab")

        result = await pfs.rename_folder("p1", "a", "a2")
        assert result.success
        root = await pfs.list_directory("p1")
        assert root.folder_names == ["a2", "ab"]
        assert (await pfs.list_directory("p1", "a2")).file_names == ["x.txt"]

        assert await pfs.delete_folder("p1", "a2") == 2
        assert (await pfs.list_directory("p1")).folder_names == ["ab"]

        kinds = [e.event_type for e in events]
        assert kinds[0] is EventType.FOLDER_CREATED
        assert EventType.FOLDER_RENAMED in kinds
        assert kinds[-1] is EventType.FOLDER_DELETED

    async def test_deleted_empty_folder_disappears(self, pfs: ProjectFilesAsync):
        await pfs.create_folder("p1", "", "Empty")
        await pfs.delete_folder("p1", "Empty")
        assert (await pfs.list_directory("p1")).folder_names == []

    async def test_create_existing(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "x.txt", b"x", folder="Plans")
        with pytest.raises(AlreadyExistsError):
            await pfs.create_folder("p1", "", "Plans")

    async def test_export_folder(self, pfs: ProjectFilesAsync):
        await pfs.create_folder("p1", "", "Plans")
        await pfs.upload("p1", "site.pdf", b"site", folder="Plans")
        await pfs.upload("p1", "east.pdf", b"east", folder="Plans/Elevations")
        await pfs.upload("p1", "other.pdf", b"other", folder="Plans2")

        archive = zipfile.ZipFile(io.BytesIO(await pfs.export_folder("p1", "Plans")))

        assert sorted(archive.namelist()) == ["Elevations/east.pdf", "site.pdf"]
        assert archive.read("site.pdf") == b"site"

    async def test_export_missing(self, pfs: ProjectFilesAsync):
        with pytest.raises(NotFoundError):
            await pfs.export_folder("p1", "Ghost")


# ---------------------------------------------------------------------------
# Moves and selection
# ---------------------------------------------------------------------------


class TestMovesAndSelection:
    async def test_move_with_conflicts(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "report.pdf", b"0", folder="dest")
        one = await pfs.upload("p1", "report.pdf", b"1", folder="x")
        two = await pfs.upload("p1", "report.pdf", b"2", folder="y")

        result = await pfs.move_entries("p1", [one.id, two.id], [], "dest")

        assert result.success
        listing = await pfs.list_directory("p1", "dest")
        assert listing.file_names == ["report.pdf", "report_1.pdf", "report_2.pdf"]
        assert await pfs.download(one.id) == b"1"

    async def test_selection_drives_bulk_delete(self, pfs: ProjectFilesAsync):
        site = await pfs.upload("p1", "site.pdf", b"s", folder="Plans")
        await pfs.upload("p1", "east.pdf", b"e", folder="Plans/Elevations")

        selection = await pfs.selection("p1")
        selection.select_folder("Plans")
        selection.deselect_file(site.id)
        assert selection.folder_state("Plans") is CheckState.INDETERMINATE

        result = await pfs.delete_entries(
            "p1", selection.selected_file_ids, selection.selected_folder_paths
        )
        assert result.success
        assert (await pfs.list_directory("p1", "Plans")).folder_names == []
        assert (await pfs.list_directory("p1", "Plans")).file_names == ["site.pdf"]

    async def test_whole_folder_selection_deletes_cleanly(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "x.txt", b"x", folder="A")
        await pfs.upload("p1", "y.txt", b"y", folder="A")

        selection = await pfs.selection("p1")
        selection.select_folder("A")
        result = await pfs.delete_entries(
            "p1", selection.selected_file_ids, selection.selected_folder_paths
        )

        assert result.success, result.message
        assert result.total == 3
        assert (await pfs.list_directory("p1")).entries == []

    async def test_folder_move_never_duplicates_paths(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "site.pdf", b"new", folder="Plans")
        await pfs.upload("p1", "site.pdf", b"old", folder="Old/Plans")

        result = await pfs.move_entries("p1", [], ["Old/Plans"], "")

        assert not result.success
        assert (await pfs.list_directory("p1", "Plans")).file_names == ["site.pdf"]
        assert (await pfs.list_directory("p1", "Old/Plans")).file_names == ["site.pdf"]

    async def test_expand_folder_selection(self, pfs: ProjectFilesAsync):
        a = await pfs.upload("p1", "a.txt", b"a", folder="F")
        await pfs.create_folder("p1", "F", "Sub")
        assert await pfs.expand_folder_selection("p1", "F") == [a.id]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestFiles:
    async def test_rename_and_download(self, pfs: ProjectFilesAsync):
        record = await pfs.upload("p1", "a.txt", b"hello")
        renamed = await pfs.rename_file(record.id, "b.txt")
        assert renamed.virtual_path == "b.txt"
        assert await pfs.download(record.id) == b"hello"

    async def test_delete_file_keeps_object(
        self, pfs: ProjectFilesAsync, store: MemoryObjectStore
    ):
        record = await pfs.upload("p1", "a.txt", b"hello")
        await pfs.delete_file(record.id)
        with pytest.raises(NotFoundError):
            await pfs.download(record.id)
        assert record.storage_key in store

    async def test_missing_object(self, pfs: ProjectFilesAsync, store: MemoryObjectStore):
        record = await pfs.upload("p1", "a.txt", b"hello")
        await store.delete(record.storage_key)
        with pytest.raises(ConsistencyError):
            await pfs.download(record.id)

    async def test_share_roundtrip(self, pfs: ProjectFilesAsync):
        await pfs.upload("p1", "site.pdf", b"s", folder="Plans")
        link = await pfs.create_share_link("p1", folder_path="Plans", created_by="u1")

        files = await pfs.resolve_share_link(link.share_id)
        assert [f.virtual_path for f in files] == ["Plans/site.pdf"]
        assert [lk.share_id for lk in await pfs.list_share_links("p1")] == [link.share_id]

        assert await pfs.revoke_share_link(link.share_id)
        with pytest.raises(NotFoundError):
            await pfs.resolve_share_link(link.share_id)

    async def test_begin_upload(self, pfs: ProjectFilesAsync):
        handle = pfs.begin_upload("p1", "a.txt", b"x", folder="Docs")
        record = await handle.result()
        assert record.virtual_path == "Docs/a.txt"
        assert pfs.pending_uploads() == []

    async def test_direct_upload(self, pfs: ProjectFilesAsync, store: MemoryObjectStore):
        target = await pfs.create_upload_target("p1", "big.dwg", uploaded_by="u1")
        await store.put(target.key, b"dwg")
        record = await pfs.complete_upload("p1", target.key, "big.dwg", size_bytes=3)
        assert await pfs.download(record.id) == b"dwg"
