"""Object storage backends for projectfs."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlparse

from projectfs.storage.local import LocalObjectStore
from projectfs.storage.memory import MemoryObjectStore
from projectfs.storage.protocol import ObjectStore

if TYPE_CHECKING:
    from pathlib import Path

__all__ = [
    "LocalObjectStore",
    "MemoryObjectStore",
    "ObjectStore",
    "open_store",
]


def open_store(location: str | Path) -> ObjectStore:
    """Build a store from a location string.

    ``s3://bucket/prefix`` opens an ``S3ObjectStore`` (needs the ``s3``
    extra); ``memory://`` an in-process store; anything else is a local
    directory.
    """
    location = str(location)
    if location.startswith("s3://"):
        from projectfs.storage.s3 import S3ObjectStore

        parsed = urlparse(location)
        return S3ObjectStore(bucket=parsed.netloc, prefix=parsed.path.strip("/"))
    if location == "memory://":
        return MemoryObjectStore()
    return LocalObjectStore(location)
