"""
S3 Artifact Store

Stores synthesized audio under:
    s3://<BUCKET>/<artifact_prefix>/<key>

The prefix is constructed server-side; keys come from audio_key() and are
never accepted from the client. Objects are written once per successful
pipeline run and hard-deleted together with their content record.
"""

from __future__ import annotations

import logging

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.exceptions import StoreError
from app.storage.base import ArtifactStore

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")


class S3ArtifactStore(ArtifactStore):
    """Async S3 operations bound to one bucket/prefix."""

    def __init__(self, bucket: str, prefix: str, region: str) -> None:
        self._bucket  = bucket
        self._prefix  = prefix.strip("/")
        self._region  = region
        self._session = aioboto3.Session()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self):
        """Return a scoped async S3 client context manager."""
        return self._session.client("s3", region_name=self._region)

    def _object_key(self, key: str) -> str:
        safe_name = key.replace("/", "_").replace("..", "_")
        return f"{self._prefix}/{safe_name}" if self._prefix else safe_name

    # ------------------------------------------------------------------
    # ArtifactStore
    # ------------------------------------------------------------------

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        object_key = self._object_key(key)
        try:
            async with self._client() as s3:
                await s3.put_object(
                    Bucket=self._bucket,
                    Key=object_key,
                    Body=data,
                    ContentType=content_type,
                )
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"Failed to upload artifact {key}: {exc}") from exc

        logger.info(
            "S3 upload ok | bucket=%s key=%s size=%d",
            self._bucket, object_key, len(data),
        )
        return key

    async def read(self, key: str) -> bytes:
        object_key = self._object_key(key)
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=self._bucket, Key=object_key)
                return await resp["Body"].read()
            except ClientError as exc:
                code = exc.response["Error"]["Code"]
                if code in _NOT_FOUND_CODES:
                    raise FileNotFoundError(f"Object not found: {object_key}") from exc
                raise StoreError(f"Failed to read artifact {key}: {exc}") from exc

    async def exists(self, key: str) -> bool:
        object_key = self._object_key(key)
        async with self._client() as s3:
            try:
                await s3.head_object(Bucket=self._bucket, Key=object_key)
                return True
            except ClientError as exc:
                if exc.response["Error"]["Code"] in _NOT_FOUND_CODES:
                    return False
                raise StoreError(f"Failed to stat artifact {key}: {exc}") from exc

    async def delete(self, key: str) -> bool:
        if not await self.exists(key):
            return False
        object_key = self._object_key(key)
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self._bucket, Key=object_key)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"Failed to delete artifact {key}: {exc}") from exc
        logger.info("S3 delete | bucket=%s key=%s", self._bucket, object_key)
        return True
