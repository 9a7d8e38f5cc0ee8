"""
Object storage protocol.

Object stores are flat: an opaque key maps to bytes.  There is no
directory primitive; all folder semantics live in the metadata layer.
MemoryObjectStore, LocalObjectStore and S3ObjectStore implement this
protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from projectfs.fs.types import UploadTarget


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol defining the interface for object storage backends.

    Every method raises ``StorageError`` when the backend fails and
    ``NotFoundError`` when a read targets a missing key.
    """

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        """Write *data* under *key*, replacing any existing object.

        Args:
            key: Opaque object key.
            data: Object content.
            content_type: MIME type recorded with the object when supported.
        """
        ...

    async def get(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises:
            NotFoundError: If no object exists under *key*.
        """
        ...

    async def exists(self, key: str) -> bool:
        """Return True if an object exists under *key*."""
        ...

    async def delete(self, key: str) -> None:
        """Delete the object under *key*.  Deleting a missing key is a no-op."""
        ...

    async def create_upload_target(self, key: str, expires_in: int = 3600) -> UploadTarget:
        """Return a target a client can upload directly to.

        Args:
            key: Object key the upload will land under.
            expires_in: Seconds the target stays valid.
        """
        ...
