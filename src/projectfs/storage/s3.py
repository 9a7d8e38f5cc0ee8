"""S3ObjectStore: Amazon S3 (or S3-compatible) object storage backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from projectfs.fs.exceptions import NotFoundError, StorageError
from projectfs.fs.types import UploadTarget

try:
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError

    _HAS_BOTO3 = True
except ImportError:  # pragma: no cover
    boto3 = None  # type: ignore[assignment]
    BotoCoreError = ClientError = None  # type: ignore[assignment,misc]
    _HAS_BOTO3 = False

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore:
    """S3 object store.  Blocking boto3 calls run in a worker thread.

    Credentials follow boto3's default chain unless given explicitly.

    Usage::

        store = S3ObjectStore(bucket="project-files", prefix="prod")
        await store.put("user1/p1/abc_plan.pdf", data, "application/pdf")
        target = await store.create_upload_target("user1/p1/def_site.jpg")
    """

    def __init__(
        self,
        *,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        if not _HAS_BOTO3:
            msg = (
                "boto3 is required for S3ObjectStore. "
                "Install it with: pip install projectfs[s3]"
            )
            raise ImportError(msg)
        if client is None:
            client = boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self._client = client

    def _key(self, key: str) -> str:
        key = key.lstrip("/")
        return f"{self.prefix}/{key}" if self.prefix else key

    @staticmethod
    def _error_code(exc: Exception) -> str:
        response = getattr(exc, "response", None) or {}
        return str(response.get("Error", {}).get("Code", ""))

    # ------------------------------------------------------------------
    # ObjectStore protocol
    # ------------------------------------------------------------------

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=self._key(key),
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 put failed for {key}: {e}") from e

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self.bucket, Key=self._key(key)
            )
            return await asyncio.to_thread(response["Body"].read)
        except (BotoCoreError, ClientError) as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                raise NotFoundError(key, f"Object not found: {key}") from None
            raise StorageError(f"S3 get failed for {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.head_object, Bucket=self.bucket, Key=self._key(key)
            )
        except (BotoCoreError, ClientError) as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"S3 head failed for {key}: {e}") from e
        return True

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket, Key=self._key(key)
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 delete failed for {key}: {e}") from e
        logger.debug("Deleted s3://%s/%s", self.bucket, self._key(key))

    async def create_upload_target(self, key: str, expires_in: int = 3600) -> UploadTarget:
        try:
            url = await asyncio.to_thread(
                self._client.generate_presigned_url,
                "put_object",
                Params={"Bucket": self.bucket, "Key": self._key(key)},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 presign failed for {key}: {e}") from e
        return UploadTarget(key=key, url=url, method="PUT", expires_in=expires_in)
