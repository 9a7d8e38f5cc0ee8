"""
LocalObjectStore: objects as files under a root directory.

Keys map to relative paths below ``root``.  Writes are atomic (temp file
plus ``os.replace``) and all disk I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from projectfs.fs.exceptions import NotFoundError, StorageError
from projectfs.fs.types import UploadTarget

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """
    Object store backed by a local directory.

    USAGE:
        store = LocalObjectStore("./objects")
        await store.put("user1/p1/abc_plan.pdf", data)
        data = await store.get("user1/p1/abc_plan.pdf")
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()

    def _resolve(self, key: str) -> Path:
        """Convert an object key to a path under ``root``."""
        relative = key.replace("\\", "/").lstrip("/")
        if not relative:
            raise StorageError("Empty object key")
        actual = (self.root / relative).resolve()

        # Security: prevent path traversal
        try:
            actual.relative_to(self.root)
        except ValueError:
            raise StorageError(f"Object key escapes storage root: {key}") from None
        return actual

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        actual_path = self._resolve(key)

        def _do_write() -> None:
            actual_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=actual_path.parent,
                prefix=".tmp_",
                suffix=actual_path.suffix,
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, actual_path)
            except Exception:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

        try:
            await asyncio.to_thread(_do_write)
        except OSError as e:
            raise StorageError(f"Failed to write object {key}: {e}") from e

    async def get(self, key: str) -> bytes:
        actual_path = self._resolve(key)
        try:
            return await asyncio.to_thread(actual_path.read_bytes)
        except FileNotFoundError:
            raise NotFoundError(key, f"Object not found: {key}") from None
        except OSError as e:
            raise StorageError(f"Failed to read object {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        actual_path = self._resolve(key)
        return await asyncio.to_thread(actual_path.is_file)

    async def delete(self, key: str) -> None:
        actual_path = self._resolve(key)
        try:
            await asyncio.to_thread(actual_path.unlink, True)
        except OSError as e:
            raise StorageError(f"Failed to delete object {key}: {e}") from e
        logger.debug("Deleted object %s", key)

    async def create_upload_target(self, key: str, expires_in: int = 3600) -> UploadTarget:
        # Local storage has no signing; the target is the destination file itself.
        return UploadTarget(key=key, url=self._resolve(key).as_uri(), expires_in=expires_in)
