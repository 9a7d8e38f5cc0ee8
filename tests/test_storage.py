"""Tests for object store backends."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import pytest
from botocore.exceptions import ClientError

from projectfs.fs.exceptions import NotFoundError, StorageError
from projectfs.storage import LocalObjectStore, MemoryObjectStore, ObjectStore, open_store
from projectfs.storage.s3 import S3ObjectStore

if TYPE_CHECKING:
    from pathlib import Path


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class StubS3Client:
    """Just enough of the boto3 S3 client for S3ObjectStore."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_with: str | None = None

    def _check(self, operation: str) -> None:
        if self.fail_with is not None:
            raise _client_error(self.fail_with, operation)

    def put_object(self, *, Bucket, Key, Body, ContentType):  # noqa: N803
        self._check("PutObject")
        self.objects[(Bucket, Key)] = Body

    def get_object(self, *, Bucket, Key):  # noqa: N803
        self._check("GetObject")
        if (Bucket, Key) not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def head_object(self, *, Bucket, Key):  # noqa: N803
        self._check("HeadObject")
        if (Bucket, Key) not in self.objects:
            raise _client_error("404", "HeadObject")
        return {}

    def delete_object(self, *, Bucket, Key):  # noqa: N803
        self._check("DeleteObject")
        self.objects.pop((Bucket, Key), None)

    def generate_presigned_url(self, method, *, Params, ExpiresIn):  # noqa: N803
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?method={method}&ttl={ExpiresIn}"


@pytest.fixture(params=["memory", "local", "s3"])
def any_store(request, tmp_path: Path) -> ObjectStore:
    if request.param == "memory":
        return MemoryObjectStore()
    if request.param == "local":
        return LocalObjectStore(tmp_path / "objects")
    return S3ObjectStore(bucket="files", client=StubS3Client())


# ---------------------------------------------------------------------------
# Shared contract
# ---------------------------------------------------------------------------


class TestObjectStoreContract:
    def test_satisfies_protocol(self, any_store: ObjectStore):
        assert isinstance(any_store, ObjectStore)

    async def test_put_get_exists_delete(self, any_store: ObjectStore):
        key = "u1/p1/abc_site.pdf"
        assert not await any_store.exists(key)

        await any_store.put(key, b"%PDF", "application/pdf")
        assert await any_store.exists(key)
        assert await any_store.get(key) == b"%PDF"

        await any_store.delete(key)
        assert not await any_store.exists(key)

    async def test_get_missing(self, any_store: ObjectStore):
        with pytest.raises(NotFoundError):
            await any_store.get("u1/p1/missing")

    async def test_delete_missing_is_quiet(self, any_store: ObjectStore):
        await any_store.delete("u1/p1/missing")

    async def test_empty_placeholder(self, any_store: ObjectStore):
        await any_store.put("p1/Plans/.keeper", b"", "text/plain")
        assert await any_store.exists("p1/Plans/.keeper")
        assert await any_store.get("p1/Plans/.keeper") == b""

    async def test_upload_target(self, any_store: ObjectStore):
        target = await any_store.create_upload_target("u1/p1/abc_site.pdf", expires_in=60)
        assert target.key == "u1/p1/abc_site.pdf"
        assert target.expires_in == 60
        assert target.url


# ---------------------------------------------------------------------------
# Backend specifics
# ---------------------------------------------------------------------------


class TestLocalObjectStore:
    async def test_layout(self, tmp_path: Path):
        store = LocalObjectStore(tmp_path)
        await store.put("u1/p1/abc_site.pdf", b"x")
        assert (tmp_path / "u1" / "p1" / "abc_site.pdf").read_bytes() == b"x"

    async def test_no_temp_files_left(self, tmp_path: Path):
        store = LocalObjectStore(tmp_path)
        await store.put("a/b.txt", b"x")
        assert [p.name for p in (tmp_path / "a").iterdir()] == ["b.txt"]

    @pytest.mark.parametrize("key", ["../escape.txt", "a/../../escape.txt", ""])
    async def test_traversal_rejected(self, tmp_path: Path, key: str):
        store = LocalObjectStore(tmp_path / "root")
        with pytest.raises(StorageError):
            await store.put(key, b"x")

    async def test_upload_target_is_file_uri(self, tmp_path: Path):
        target = await LocalObjectStore(tmp_path).create_upload_target("a.txt")
        assert target.url.startswith("file://")


class TestS3ObjectStore:
    async def test_prefix_applied(self):
        client = StubS3Client()
        store = S3ObjectStore(bucket="files", prefix="/prod/", client=client)
        await store.put("u1/p1/a.txt", b"x")
        assert ("files", "prod/u1/p1/a.txt") in client.objects

    async def test_presigned_put(self):
        store = S3ObjectStore(bucket="files", client=StubS3Client())
        target = await store.create_upload_target("k.txt", expires_in=120)
        assert target.method == "PUT"
        assert "method=put_object" in target.url
        assert "ttl=120" in target.url

    @pytest.mark.parametrize("operation", ["put", "get", "exists", "delete"])
    async def test_backend_errors_wrapped(self, operation: str):
        client = StubS3Client()
        client.fail_with = "AccessDenied"
        store = S3ObjectStore(bucket="files", client=client)

        with pytest.raises(StorageError, match="AccessDenied"):
            if operation == "put":
                await store.put("k", b"x")
            elif operation == "get":
                await store.get("k")
            elif operation == "exists":
                await store.exists("k")
            else:
                await store.delete("k")


class TestOpenStore:
    def test_local(self, tmp_path: Path):
        store = open_store(tmp_path)
        assert isinstance(store, LocalObjectStore)
        assert store.root == tmp_path.resolve()

    def test_memory(self):
        assert isinstance(open_store("memory://"), MemoryObjectStore)

    def test_s3(self, monkeypatch):
        monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
        store = open_store("s3://project-files/prod/uploads")
        assert isinstance(store, S3ObjectStore)
        assert store.bucket == "project-files"
        assert store.prefix == "prod/uploads"
