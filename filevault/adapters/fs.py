"""Filesystem-backed object store for single-node deployments.

Layout: <root>/<bucket>/data/<key>         object bytes
        <root>/<bucket>/meta/<key>.json    content type + user metadata

All writes are atomic (tmp + rename). The sidecar is written last and removed
first, so its presence is what makes an object visible.
"""

from __future__ import annotations

import asyncio
import contextlib
import datetime
import json
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import AsyncIterator
from typing import Optional

from filevault.adapters.base import ObjectDownload
from filevault.adapters.base import ObjectInfo
from filevault.errors import BackendUnavailable
from filevault.errors import InvalidRequest
from filevault.errors import NotFound


logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


class FileSystemObjectStore:
    def __init__(self, root_dir: str) -> None:
        self.root = Path(root_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def _safe_parts(self, bucket: str, key: str) -> list[str]:
        parts = key.split("/")
        if not bucket or "/" in bucket or bucket in (".", ".."):
            raise InvalidRequest(f"Invalid bucket name: {bucket}")
        if not key or any(part in ("", ".", "..") for part in parts):
            raise InvalidRequest(f"Invalid object key: {key}")
        return parts

    def data_path(self, bucket: str, key: str) -> Path:
        return self.root / bucket / "data" / Path(*self._safe_parts(bucket, key))

    def meta_path(self, bucket: str, key: str) -> Path:
        parts = self._safe_parts(bucket, key)
        return self.root / bucket / "meta" / Path(*parts[:-1]) / f"{parts[-1]}.json"

    @staticmethod
    def _write_atomic(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            with tmp_path.open("wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _read_sidecar(self, bucket: str, key: str) -> dict:
        meta_path = self.meta_path(bucket, key)
        try:
            with meta_path.open("r") as f:
                return dict(json.load(f))
        except FileNotFoundError as e:
            raise NotFound(f"Object not found: {bucket}/{key}") from e

    def _info_from_sidecar(self, bucket: str, key: str, sidecar: dict) -> ObjectInfo:
        meta_path = self.meta_path(bucket, key)
        last_modified = datetime.datetime.fromtimestamp(meta_path.stat().st_mtime, tz=datetime.timezone.utc)
        return ObjectInfo(
            key=key,
            size=int(sidecar["size"]),
            content_type=sidecar["content_type"],
            last_modified=last_modified,
            metadata=dict(sidecar.get("metadata") or {}),
        )

    async def _run(self, func, *args):  # type: ignore[no-untyped-def]
        try:
            return await asyncio.to_thread(func, *args)
        except (NotFound, InvalidRequest):
            raise
        except FileNotFoundError as e:
            raise NotFound(str(e)) from e
        except OSError as e:
            logger.error(f"FS backend failure: {e}")
            raise BackendUnavailable(f"Filesystem store failure: {e}") from e

    async def ensure_bucket(self, bucket: str) -> None:
        def _mkdirs() -> None:
            (self.root / bucket / "data").mkdir(parents=True, exist_ok=True)
            (self.root / bucket / "meta").mkdir(parents=True, exist_ok=True)

        await self._run(_mkdirs)

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo:
        sidecar = {"size": len(data), "content_type": content_type, "metadata": dict(metadata or {})}

        def _put() -> ObjectInfo:
            self._write_atomic(self.data_path(bucket, key), bytes(data))
            self._write_atomic(self.meta_path(bucket, key), json.dumps(sidecar).encode())
            return self._info_from_sidecar(bucket, key, sidecar)

        info = await self._run(_put)
        logger.debug(f"FS: wrote object {bucket}/{key} size={len(data)}")
        return info

    async def get(self, bucket: str, key: str) -> ObjectDownload:
        sidecar = await self._run(self._read_sidecar, bucket, key)
        data_path = self.data_path(bucket, key)
        # Open eagerly so a concurrent delete surfaces here, not mid-stream.
        handle = await self._run(data_path.open, "rb")

        async def _chunks() -> AsyncIterator[bytes]:
            try:
                while True:
                    chunk = await asyncio.to_thread(handle.read, STREAM_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
            finally:
                handle.close()

        return ObjectDownload(
            key=key,
            size=int(sidecar["size"]),
            content_type=sidecar["content_type"],
            chunks=_chunks(),
            metadata=dict(sidecar.get("metadata") or {}),
        )

    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        def _copy() -> None:
            sidecar = self._read_sidecar(src_bucket, src_key)
            dst_data = self.data_path(dst_bucket, dst_key)
            dst_data.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = dst_data.with_name(f"{dst_data.name}.{uuid.uuid4().hex}.tmp")
            try:
                shutil.copyfile(self.data_path(src_bucket, src_key), tmp_path)
                tmp_path.replace(dst_data)
            finally:
                if tmp_path.exists():
                    tmp_path.unlink()
            self._write_atomic(self.meta_path(dst_bucket, dst_key), json.dumps(sidecar).encode())

        await self._run(_copy)
        logger.debug(f"FS: copied {src_bucket}/{src_key} -> {dst_bucket}/{dst_key}")

    async def delete(self, bucket: str, key: str) -> None:
        def _delete() -> None:
            meta_path = self.meta_path(bucket, key)
            try:
                meta_path.unlink()
            except FileNotFoundError as e:
                raise NotFound(f"Object not found: {bucket}/{key}") from e
            with contextlib.suppress(FileNotFoundError):
                self.data_path(bucket, key).unlink()

        await self._run(_delete)
        logger.debug(f"FS: deleted object {bucket}/{key}")

    async def exists(self, bucket: str, key: str) -> bool:
        return bool(await self._run(self.meta_path(bucket, key).exists))

    async def stat(self, bucket: str, key: str) -> ObjectInfo:
        def _stat() -> ObjectInfo:
            return self._info_from_sidecar(bucket, key, self._read_sidecar(bucket, key))

        return await self._run(_stat)

    async def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        sidecar = await self._run(self._read_sidecar, bucket, key)
        return dict(sidecar.get("metadata") or {})

    async def set_metadata(
        self,
        bucket: str,
        key: str,
        metadata: dict[str, str],
        content_type: Optional[str] = None,
    ) -> None:
        def _set() -> None:
            sidecar = self._read_sidecar(bucket, key)
            sidecar["metadata"] = dict(metadata)
            if content_type:
                sidecar["content_type"] = content_type
            self._write_atomic(self.meta_path(bucket, key), json.dumps(sidecar).encode())

        await self._run(_set)

    async def list_by_prefix(self, bucket: str, prefix: str) -> list[ObjectInfo]:
        meta_root = self.root / bucket / "meta"
        # Only the prefix's directory part can hold matching sidecars
        prefix_dir = prefix.rpartition("/")[0]
        walk_root = meta_root / Path(*self._safe_parts(bucket, prefix_dir)) if prefix_dir else meta_root

        def _list() -> list[ObjectInfo]:
            if not walk_root.is_dir():
                return []
            found = []
            for meta_file in walk_root.rglob("*.json"):
                key = meta_file.relative_to(meta_root).as_posix()[: -len(".json")]
                if not key.startswith(prefix):
                    continue
                try:
                    found.append(self._info_from_sidecar(bucket, key, self._read_sidecar(bucket, key)))
                except (NotFound, FileNotFoundError):
                    # Removed between the directory walk and the read
                    continue
            return sorted(found, key=lambda info: info.key)

        return await self._run(_list)

    async def close(self) -> None:
        logger.debug(f"FS store at {self.root} closed")
