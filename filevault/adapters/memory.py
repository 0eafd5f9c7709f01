"""Process-local object store used for tests and the ``memory`` backend."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from dataclasses import replace
from typing import AsyncIterator
from typing import Optional

from filevault.adapters.base import ObjectDownload
from filevault.adapters.base import ObjectInfo
from filevault.errors import NotFound


logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class _StoredBlob:
    data: bytes
    content_type: str
    metadata: dict[str, str]
    last_modified: datetime.datetime


class InMemoryObjectStore:
    """Dict-backed store. Each method completes without yielding, so every call is atomic."""

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, _StoredBlob]] = {}

    def _bucket(self, bucket: str) -> dict[str, _StoredBlob]:
        return self._buckets.setdefault(bucket, {})

    def _blob(self, bucket: str, key: str) -> _StoredBlob:
        blob = self._bucket(bucket).get(key)
        if blob is None:
            raise NotFound(f"Object not found: {bucket}/{key}")
        return blob

    @staticmethod
    def _info(key: str, blob: _StoredBlob) -> ObjectInfo:
        return ObjectInfo(
            key=key,
            size=len(blob.data),
            content_type=blob.content_type,
            last_modified=blob.last_modified,
            metadata=dict(blob.metadata),
        )

    async def ensure_bucket(self, bucket: str) -> None:
        self._bucket(bucket)

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo:
        blob = _StoredBlob(
            data=bytes(data),
            content_type=content_type,
            metadata=dict(metadata or {}),
            last_modified=datetime.datetime.now(datetime.timezone.utc),
        )
        self._bucket(bucket)[key] = blob
        return self._info(key, blob)

    async def get(self, bucket: str, key: str) -> ObjectDownload:
        blob = self._blob(bucket, key)

        async def _chunks() -> AsyncIterator[bytes]:
            for offset in range(0, len(blob.data), STREAM_CHUNK_SIZE):
                yield blob.data[offset : offset + STREAM_CHUNK_SIZE]

        return ObjectDownload(
            key=key,
            size=len(blob.data),
            content_type=blob.content_type,
            chunks=_chunks(),
            metadata=dict(blob.metadata),
        )

    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        blob = self._blob(src_bucket, src_key)
        self._bucket(dst_bucket)[dst_key] = replace(
            blob, metadata=dict(blob.metadata), last_modified=datetime.datetime.now(datetime.timezone.utc)
        )

    async def delete(self, bucket: str, key: str) -> None:
        self._blob(bucket, key)
        del self._bucket(bucket)[key]

    async def exists(self, bucket: str, key: str) -> bool:
        return key in self._bucket(bucket)

    async def stat(self, bucket: str, key: str) -> ObjectInfo:
        return self._info(key, self._blob(bucket, key))

    async def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        return dict(self._blob(bucket, key).metadata)

    async def set_metadata(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        content_type: Optional[str] = None,
    ) -> None:
        blob = self._blob(bucket, key)
        self._bucket(bucket)[key] = replace(
            blob,
            metadata=dict(metadata),
            content_type=content_type or blob.content_type,
        )

    async def list_by_prefix(self, bucket: str, prefix: str) -> list[ObjectInfo]:
        bucket_items = self._bucket(bucket)
        return [self._info(key, bucket_items[key]) for key in sorted(bucket_items) if key.startswith(prefix)]

    async def close(self) -> None:
        logger.debug("In-memory object store closed")
