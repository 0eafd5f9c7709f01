"""S3-compatible object store backed by the ``minio`` client.

The client is synchronous; every call is pushed off the event loop with
``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any
from typing import AsyncIterator
from typing import Callable
from typing import Optional
from typing import TypeVar
from urllib.parse import quote
from urllib.parse import unquote

import urllib3
from minio import Minio
from minio.commonconfig import REPLACE
from minio.commonconfig import CopySource
from minio.error import MinioException
from minio.error import S3Error

from filevault.adapters.base import ObjectDownload
from filevault.adapters.base import ObjectInfo
from filevault.errors import BackendUnavailable
from filevault.errors import InvalidRequest
from filevault.errors import NotFound
from filevault.models.files import DEFAULT_CONTENT_TYPE


logger = logging.getLogger(__name__)

T = TypeVar("T")

USER_META_PREFIX = "x-amz-meta-"
NOT_FOUND_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket", "ResourceNotFound"}
STREAM_CHUNK_SIZE = 64 * 1024


def encode_metadata(metadata: Optional[dict[str, str]]) -> dict[str, str]:
    """Percent-encode metadata values; S3 headers only carry US-ASCII."""
    return {name: quote(str(value), safe="") for name, value in (metadata or {}).items()}


def user_metadata(headers: Optional[Any]) -> dict[str, str]:
    """Extract user metadata from response headers, stripping the x-amz-meta- prefix."""
    if not headers:
        return {}
    found = {}
    for name, value in headers.items():
        if name.lower().startswith(USER_META_PREFIX):
            found[name[len(USER_META_PREFIX) :]] = unquote(value)
    return found


def listed_content_type(headers: Optional[Any]) -> Optional[str]:
    for name, value in (headers or {}).items():
        if name.lower() == "content-type":
            return value
    return None


class MinioObjectStore:
    def __init__(self, client: Minio) -> None:
        self.client = client

    @classmethod
    def from_config(cls, config: Any) -> MinioObjectStore:
        client = Minio(
            endpoint=config.minio_endpoint,
            access_key=config.minio_access_key or None,
            secret_key=config.minio_secret_key or None,
            secure=config.minio_secure,
            region=config.minio_region or None,
        )
        return cls(client)

    async def _call(self, description: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except S3Error as e:
            if e.code in NOT_FOUND_CODES:
                raise NotFound(f"{description}: {e.code}") from e
            logger.error(f"S3 error during {description}: {e.code} {e}")
            raise BackendUnavailable(f"{description} failed: {e.code}") from e
        except ValueError as e:
            # minio-py validates arguments client-side before any request goes out
            logger.warning(f"Rejected arguments for {description}: {e}")
            raise InvalidRequest(f"{description} rejected: {e}") from e
        except (MinioException, urllib3.exceptions.HTTPError, OSError) as e:
            logger.error(f"Backend failure during {description}: {e}")
            raise BackendUnavailable(f"{description} failed: {e}") from e

    async def ensure_bucket(self, bucket: str) -> None:
        if not await self._call(f"bucket_exists {bucket}", self.client.bucket_exists, bucket_name=bucket):
            await self._call(f"make_bucket {bucket}", self.client.make_bucket, bucket_name=bucket)
            logger.info(f"Created bucket {bucket}")

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo:
        await self._call(
            f"put {bucket}/{key}",
            self.client.put_object,
            bucket_name=bucket,
            object_name=key,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata=encode_metadata(metadata),
        )
        return ObjectInfo(key=key, size=len(data), content_type=content_type, metadata=dict(metadata or {}))

    async def get(self, bucket: str, key: str) -> ObjectDownload:
        response = await self._call(f"get {bucket}/{key}", self.client.get_object, bucket_name=bucket, object_name=key)
        headers = response.headers

        async def _chunks() -> AsyncIterator[bytes]:
            try:
                while True:
                    chunk = await asyncio.to_thread(response.read, STREAM_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
            finally:
                response.close()
                response.release_conn()

        return ObjectDownload(
            key=key,
            size=int(headers.get("content-length") or 0),
            content_type=headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            chunks=_chunks(),
            metadata=user_metadata(headers),
        )

    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        await self._call(
            f"copy {src_bucket}/{src_key} -> {dst_bucket}/{dst_key}",
            self.client.copy_object,
            bucket_name=dst_bucket,
            object_name=dst_key,
            source=CopySource(bucket_name=src_bucket, object_name=src_key),
        )

    async def delete(self, bucket: str, key: str) -> None:
        # S3 DELETE succeeds for absent keys; stat first so a lost race reports NotFound.
        await self.stat(bucket, key)
        await self._call(f"delete {bucket}/{key}", self.client.remove_object, bucket_name=bucket, object_name=key)

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            await self.stat(bucket, key)
        except NotFound:
            return False
        return True

    async def stat(self, bucket: str, key: str) -> ObjectInfo:
        obj = await self._call(f"stat {bucket}/{key}", self.client.stat_object, bucket_name=bucket, object_name=key)
        return ObjectInfo(
            key=key,
            size=int(obj.size or 0),
            content_type=obj.content_type or DEFAULT_CONTENT_TYPE,
            last_modified=obj.last_modified,
            metadata=user_metadata(obj.metadata),
        )

    async def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        info = await self.stat(bucket, key)
        return dict(info.metadata or {})

    async def set_metadata(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        content_type: Optional[str] = None,
    ) -> None:
        # REPLACE drops the stored Content-Type unless it is sent again.
        if content_type is None:
            content_type = (await self.stat(bucket, key)).content_type
        await self._call(
            f"set_metadata {bucket}/{key}",
            self.client.copy_object,
            bucket_name=bucket,
            object_name=key,
            source=CopySource(bucket_name=bucket, object_name=key),
            metadata={**encode_metadata(metadata), "Content-Type": content_type},
            metadata_directive=REPLACE,
        )

    async def list_by_prefix(self, bucket: str, prefix: str) -> list[ObjectInfo]:
        def _list() -> list[ObjectInfo]:
            found = []
            for obj in self.client.list_objects(
                bucket_name=bucket, prefix=prefix, recursive=True, include_user_meta=True
            ):
                if obj.is_dir:
                    continue
                headers = obj.metadata
                if not headers:
                    # Plain S3 listings carry neither user metadata nor content type
                    try:
                        headers = self.client.stat_object(bucket_name=bucket, object_name=obj.object_name).metadata
                    except S3Error as e:
                        if e.code not in NOT_FOUND_CODES:
                            raise
                        logger.debug(f"{bucket}/{obj.object_name} vanished during listing")
                        continue
                found.append(
                    ObjectInfo(
                        key=obj.object_name,
                        size=int(obj.size or 0),
                        content_type=listed_content_type(headers) or DEFAULT_CONTENT_TYPE,
                        last_modified=obj.last_modified,
                        metadata=user_metadata(headers),
                    )
                )
            return sorted(found, key=lambda info: info.key)

        return await self._call(f"list {bucket}/{prefix}", _list)

    async def close(self) -> None:
        logger.debug("Minio object store closed")
