"""Tests for deriving directory listings from flat records."""

from __future__ import annotations

from projectfs.fs.index import build_listing, files_under, folder_paths
from projectfs.models.files import FileKind, ProjectFile
from projectfs.models.folders import ProjectFolder


def _file(path: str, *, kind: FileKind = FileKind.NORMAL, deleted: bool = False) -> ProjectFile:
    return ProjectFile(
        project_id="p1",
        storage_key=f"u1/p1/{path}",
        virtual_path=path,
        kind=kind,
        is_deleted=deleted,
    )


def _folder(path: str) -> ProjectFolder:
    parent, _, name = path.rpartition("/")
    return ProjectFolder(project_id="p1", folder_name=name, folder_path=path, parent_path=parent)


# ---------------------------------------------------------------------------
# build_listing
# ---------------------------------------------------------------------------


class TestBuildListing:
    def test_plans_scenario(self):
        files = [_file("Plans/site.pdf"), _file("Plans/Elevations/east.pdf")]

        root = build_listing("", files)
        assert root.folder_names == ["Plans"]
        assert root.file_names == []

        plans = build_listing("Plans", files)
        assert plans.folder_names == ["Elevations"]
        assert plans.file_names == ["site.pdf"]

        elevations = build_listing("Plans/Elevations", files)
        assert elevations.folder_names == []
        assert elevations.file_names == ["east.pdf"]

    def test_shared_prefix_not_confused(self):
        files = [_file("a/x.txt"), _file("ab/y.txt")]
        listing = build_listing("a", files)
        assert listing.file_names == ["x.txt"]
        assert listing.folder_names == []

    def test_folder_listed_once(self):
        files = [_file("Plans/a.pdf"), _file("Plans/b.pdf"), _file("Plans/Sub/c.pdf")]
        assert build_listing("", files).folder_names == ["Plans"]

    def test_deleted_records_skipped(self):
        files = [_file("Plans/site.pdf", deleted=True), _file("notes.txt")]
        listing = build_listing("", files)
        assert listing.folder_names == []
        assert listing.file_names == ["notes.txt"]

    def test_sentinel_hidden_but_folder_visible(self):
        files = [_file("Empty/.keeper", kind=FileKind.SENTINEL)]
        root = build_listing("", files)
        assert root.folder_names == ["Empty"]

        inside = build_listing("Empty", files)
        assert inside.file_names == []
        assert inside.folder_names == []

    def test_explicit_empty_folder(self):
        listing = build_listing("", [], [_folder("Photos")])
        assert listing.folder_names == ["Photos"]

    def test_explicit_folder_nested(self):
        folders = [_folder("Photos/2024")]
        assert build_listing("", [], folders).folder_names == ["Photos"]
        assert build_listing("Photos", [], folders).folder_names == ["2024"]

    def test_explicit_folder_merges_with_implied(self):
        listing = build_listing("", [_file("Plans/site.pdf")], [_folder("Plans")])
        assert listing.folder_names == ["Plans"]

    def test_sorted_folders_first(self):
        files = [_file("b.txt"), _file("A.txt"), _file("zeta/x"), _file("Alpha/y")]
        listing = build_listing("", files)
        assert [n.name for n in listing.entries] == ["Alpha", "zeta", "A.txt", "b.txt"]

    def test_nodes_carry_ids_and_paths(self):
        record = _file("Plans/site.pdf")
        listing = build_listing("Plans", [record])
        node = listing.files[0]
        assert node.type == "file"
        assert node.path == "Plans/site.pdf"
        assert node.file_id == record.id
        assert listing.records[record.id] is record

    def test_unnormalized_current_path(self):
        files = [_file("Plans/site.pdf")]
        assert build_listing("/Plans/", files).file_names == ["site.pdf"]

    def test_folder_node_path(self):
        listing = build_listing("Plans", [_file("Plans/Elevations/east.pdf")])
        assert listing.folders[0].path == "Plans/Elevations"
        assert listing.folders[0].file_id is None


# ---------------------------------------------------------------------------
# folder_paths / files_under
# ---------------------------------------------------------------------------


class TestFolderPaths:
    def test_all_ancestors(self):
        files = [_file("Plans/Elevations/east.pdf"), _file("notes.txt")]
        assert folder_paths(files) == ["Plans", "Plans/Elevations"]

    def test_includes_explicit(self):
        assert folder_paths([], [_folder("Photos/2024")]) == ["Photos", "Photos/2024"]

    def test_skips_deleted(self):
        assert folder_paths([_file("Old/x.txt", deleted=True)]) == []


class TestFilesUnder:
    def test_guarded_prefix(self):
        files = [_file("a/x.txt"), _file("a/b/y.txt"), _file("ab/z.txt")]
        paths = sorted(r.virtual_path for r in files_under("a", files))
        assert paths == ["a/b/y.txt", "a/x.txt"]

    def test_sentinels_excluded_by_default(self):
        files = [_file("a/.keeper", kind=FileKind.SENTINEL), _file("a/x.txt")]
        assert [r.virtual_path for r in files_under("a", files)] == ["a/x.txt"]
        assert len(files_under("a", files, include_sentinels=True)) == 2
