from __future__ import annotations

import datetime
from dataclasses import dataclass
from dataclasses import field
from typing import AsyncIterator
from typing import Optional
from typing import Protocol
from typing import runtime_checkable


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    content_type: str
    last_modified: Optional[datetime.datetime] = None
    # None means the listing did not include user metadata; callers read it separately.
    metadata: Optional[dict[str, str]] = None


@dataclass
class ObjectDownload:
    key: str
    size: int
    content_type: str
    chunks: AsyncIterator[bytes]
    metadata: dict[str, str] = field(default_factory=dict)

    async def read(self) -> bytes:
        return b"".join([chunk async for chunk in self.chunks])


@runtime_checkable
class ObjectStore(Protocol):
    """Object-level capabilities the lifecycle core needs from a storage backend.

    Every method raises ``NotFound`` for a missing object and ``BackendUnavailable``
    for transport or backend failures. ``delete`` of an absent key raises ``NotFound``.
    """

    async def ensure_bucket(self, bucket: str) -> None: ...
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo: ...
    async def get(self, bucket: str, key: str) -> ObjectDownload: ...
    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None: ...
    async def delete(self, bucket: str, key: str) -> None: ...
    async def exists(self, bucket: str, key: str) -> bool: ...
    async def stat(self, bucket: str, key: str) -> ObjectInfo: ...
    async def get_metadata(self, bucket: str, key: str) -> dict[str, str]: ...
    async def set_metadata(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        content_type: Optional[str] = None,
    ) -> None: ...
    async def list_by_prefix(self, bucket: str, prefix: str) -> list[ObjectInfo]: ...
    async def close(self) -> None: ...
