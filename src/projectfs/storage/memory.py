"""MemoryObjectStore: dict-backed object store for tests and ephemeral use."""

from __future__ import annotations

from projectfs.fs.exceptions import NotFoundError
from projectfs.fs.types import UploadTarget


class MemoryObjectStore:
    """In-process object store.

    Usage::

        store = MemoryObjectStore()
        await store.put("p1/a.txt", b"hello")
        assert await store.get("p1/a.txt") == b"hello"
    """

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self._content_types: dict[str, str] = {}

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self._objects[key] = bytes(data)
        self._content_types[key] = content_type

    async def get(self, key: str) -> bytes:
        try:
            return self._objects[key]
        except KeyError:
            raise NotFoundError(key, f"Object not found: {key}") from None

    async def exists(self, key: str) -> bool:
        return key in self._objects

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)
        self._content_types.pop(key, None)

    async def create_upload_target(self, key: str, expires_in: int = 3600) -> UploadTarget:
        return UploadTarget(key=key, url=f"memory://{key}", expires_in=expires_in)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        """All stored keys, sorted."""
        return sorted(self._objects)

    def content_type(self, key: str) -> str | None:
        return self._content_types.get(key)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects
