"""Soft-delete lifecycle for user files.

Active objects move into a separate trash bucket on delete and come back on
restore. Every move is copy-then-delete: an interrupted operation leaves a
duplicate behind, never a loss. No step is retried here; backend failures
propagate to the caller as they happen.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any
from typing import Callable
from typing import Iterator
from typing import Optional

from filevault.adapters.base import ObjectDownload
from filevault.adapters.base import ObjectInfo
from filevault.adapters.base import ObjectStore
from filevault.errors import CorruptState
from filevault.errors import FilevaultError
from filevault.errors import InvalidRequest
from filevault.errors import NotFound
from filevault.errors import Unauthorized
from filevault.models.files import DEFAULT_CONTENT_TYPE
from filevault.models.files import META_ORIGINAL_NAME
from filevault.models.files import META_RESTORED_AT
from filevault.models.files import META_UPLOADED_AT
from filevault.models.files import StoredObject
from filevault.models.files import TrashedObject
from filevault.models.files import TrashMetadata
from filevault.models.files import active_metadata
from filevault.models.files import lookup_metadata
from filevault.models.results import OperationResult
from filevault.monitoring import get_metrics_collector
from filevault.storage import keys
from filevault.storage.retention import RetentionPolicy
from filevault.tracing import trace_operation
from filevault.tracing import tracer
from filevault.utils import millis_to_iso
from filevault.utils import now_millis


logger = logging.getLogger(__name__)


class LifecycleManager:
    def __init__(
        self,
        store: ObjectStore,
        retention: Optional[RetentionPolicy] = None,
        *,
        active_bucket: str = "files",
        trash_bucket: str = "trash",
        clock: Callable[[], int] = now_millis,
        restore_key_fallback: bool = False,
        max_file_name_length: int = keys.DEFAULT_MAX_FILE_NAME_LENGTH,
    ) -> None:
        self.store = store
        self.retention = retention or RetentionPolicy()
        self.active_bucket = active_bucket
        self.trash_bucket = trash_bucket
        self.clock = clock
        self.restore_key_fallback = restore_key_fallback
        self.max_file_name_length = max_file_name_length

    @classmethod
    def from_config(cls, store: ObjectStore, config: Any, clock: Callable[[], int] = now_millis) -> LifecycleManager:
        return cls(
            store,
            RetentionPolicy.from_days(config.trash_retention_days),
            active_bucket=config.active_bucket,
            trash_bucket=config.trash_bucket,
            clock=clock,
            restore_key_fallback=config.trash_restore_key_fallback,
            max_file_name_length=config.max_file_name_length,
        )

    async def ensure_buckets(self) -> None:
        await self.store.ensure_bucket(self.active_bucket)
        await self.store.ensure_bucket(self.trash_bucket)

    @contextlib.contextmanager
    def _observe(self, operation: str) -> Iterator[None]:
        collector = get_metrics_collector()
        try:
            yield
        except FilevaultError as e:
            collector.record_trash_operation(operation, e.kind)
            raise
        collector.record_trash_operation(operation, "success")

    def _active_key(self, user_id: str, file_name: str) -> str:
        return keys.active_key(user_id, file_name, self.max_file_name_length)

    def _check_trash_key(self, trash_key: str) -> keys.TrashKey:
        """Reject caller-supplied paths that cannot be trash keys before touching the backend."""
        if not isinstance(trash_key, str) or not trash_key.startswith(keys.USERS_ROOT):
            raise InvalidRequest("Trash path must start with 'users/'")
        segments = trash_key.split("/")
        if len(segments) != 3 or any(segment in ("", ".", "..") for segment in segments):
            raise InvalidRequest(f"Malformed trash path: {trash_key}")
        return keys.decode_trash_key(trash_key)

    @staticmethod
    def _authorize(user_id: str, metadata: TrashMetadata, trash_key: str) -> None:
        # The key prefix is guessable; only the stored owner grants access.
        if metadata.user_id is None or metadata.user_id != user_id:
            logger.warning(f"Ownership mismatch on {trash_key}: caller={user_id} owner={metadata.user_id}")
            raise Unauthorized("Unauthorized: File does not belong to user")

    async def _stat_trash(self, trash_key: str) -> ObjectInfo:
        try:
            return await self.store.stat(self.trash_bucket, trash_key)
        except NotFound as e:
            raise NotFound("File not found in trash") from e

    async def _trash_metadata(self, info: ObjectInfo) -> TrashMetadata:
        metadata = info.metadata
        if metadata is None:
            metadata = await self.store.get_metadata(self.trash_bucket, info.key)
        return TrashMetadata.from_mapping(metadata)

    # Active namespace

    @trace_operation("upload_file")
    async def upload_file(
        self,
        user_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        key = self._active_key(user_id, file_name)
        uploaded_at = millis_to_iso(self.clock())
        content_type = content_type or DEFAULT_CONTENT_TYPE

        try:
            info = await self.store.put(
                self.active_bucket,
                key,
                data,
                content_type,
                active_metadata(user_id, file_name, META_UPLOADED_AT, uploaded_at),
            )
        except FilevaultError:
            get_metrics_collector().record_file_operation("upload", False)
            raise

        get_metrics_collector().record_file_operation("upload", True, size_bytes=len(data))
        logger.info(f"Uploaded {key} size={len(data)} content_type={content_type}")
        return StoredObject(
            name=file_name,
            path=key,
            size=info.size,
            content_type=content_type,
            last_modified=info.last_modified.isoformat() if info.last_modified else uploaded_at,
            uploaded_at=uploaded_at,
        )

    @trace_operation("list_files")
    async def list_files(self, user_id: str) -> list[StoredObject]:
        entries = await self.store.list_by_prefix(self.active_bucket, keys.user_prefix(user_id))
        files = [
            StoredObject(
                name=lookup_metadata(info.metadata, META_ORIGINAL_NAME) or keys.leaf_name(info.key),
                path=info.key,
                size=info.size,
                content_type=info.content_type,
                last_modified=info.last_modified.isoformat() if info.last_modified else None,
                uploaded_at=lookup_metadata(info.metadata, META_UPLOADED_AT)
                or lookup_metadata(info.metadata, META_RESTORED_AT),
            )
            for info in entries
            if keys.is_user_key(user_id, info.key)
        ]
        return sorted(files, key=lambda f: (f.name, f.path))

    @trace_operation("download_file")
    async def download_file(self, user_id: str, file_name: str) -> ObjectDownload:
        key = self._active_key(user_id, file_name)
        try:
            download = await self.store.get(self.active_bucket, key)
        except NotFound as e:
            raise NotFound(f"File not found: {file_name}") from e
        get_metrics_collector().record_file_operation("download", True)
        return download

    # Trash lifecycle

    @trace_operation("move_to_trash")
    async def move_to_trash(self, user_id: str, file_name: str) -> OperationResult:
        with self._observe("move_to_trash"):
            source_key = self._active_key(user_id, file_name)

            with tracer.start_as_current_span("move_to_trash.check_source"):
                try:
                    source = await self.store.stat(self.active_bucket, source_key)
                except NotFound as e:
                    raise NotFound(f"File not found: {file_name}") from e

            deleted_at = self.clock()
            target_key = keys.trash_key(user_id, file_name, deleted_at, self.max_file_name_length)

            with tracer.start_as_current_span("move_to_trash.copy_to_trash"):
                try:
                    await self.store.copy(self.active_bucket, source_key, self.trash_bucket, target_key)
                except NotFound as e:
                    # Source vanished after the stat: another delete won the race.
                    raise NotFound(f"File not found: {file_name}") from e

            with tracer.start_as_current_span("move_to_trash.write_metadata"):
                metadata = TrashMetadata(
                    user_id=user_id,
                    original_name=file_name,
                    deleted_at=millis_to_iso(deleted_at),
                    original_content_type=source.content_type,
                )
                await self.store.set_metadata(
                    self.trash_bucket, target_key, metadata.to_mapping(), content_type=source.content_type
                )

            with tracer.start_as_current_span("move_to_trash.delete_source"):
                try:
                    await self.store.delete(self.active_bucket, source_key)
                except NotFound:
                    logger.info(f"Active object {source_key} already removed by a concurrent delete")

        logger.info(f"Moved {source_key} to trash as {target_key}")
        return OperationResult(
            name=file_name,
            path=target_key,
            message=(
                "File moved to trash. Will be permanently deleted after "
                f"{self.retention.retention_days} days."
            ),
        )

    @trace_operation("list_trash")
    async def list_trash(self, user_id: str) -> list[TrashedObject]:
        now = self.clock()
        entries = await self.store.list_by_prefix(self.trash_bucket, keys.user_prefix(user_id))

        trashed = []
        for info in entries:
            try:
                decoded = keys.decode_trash_key(info.key)
            except keys.InvalidKey:
                logger.warning(f"Skipping undecodable trash key {info.key}")
                continue

            try:
                metadata = await self._trash_metadata(info)
            except NotFound:
                # Restored or purged between the listing and the metadata read
                continue

            if metadata.user_id is not None and metadata.user_id != user_id:
                logger.warning(f"Skipping trash key {info.key} owned by another user")
                continue

            expires_at = self.retention.expiry_of(decoded.deleted_at_millis)
            trashed.append(
                TrashedObject(
                    name=metadata.original_name or decoded.file_name_fragment,
                    path=info.key,
                    size=info.size,
                    content_type=metadata.original_content_type or info.content_type,
                    user_id=metadata.user_id,
                    deleted_at_millis=decoded.deleted_at_millis,
                    deleted_at=millis_to_iso(decoded.deleted_at_millis),
                    expires_at=millis_to_iso(expires_at),
                    days_remaining=self.retention.days_remaining(expires_at, now),
                )
            )

        return sorted(trashed, key=lambda t: (-t.deleted_at_millis, t.path))

    @trace_operation("restore_from_trash")
    async def restore_from_trash(self, user_id: str, trash_key: str) -> OperationResult:
        with self._observe("restore"):
            decoded = self._check_trash_key(trash_key)

            with tracer.start_as_current_span("restore.read_metadata"):
                info = await self._stat_trash(trash_key)
                metadata = await self._trash_metadata(info)

            self._authorize(user_id, metadata, trash_key)

            if metadata.original_name:
                original_name = metadata.original_name
            elif self.restore_key_fallback:
                original_name = decoded.file_name_fragment
                logger.warning(
                    f"Degraded restore: {trash_key} has no originalName metadata, using key fragment {original_name!r}"
                )
            else:
                original_name = metadata.require_original_name(trash_key)

            try:
                restore_key = self._active_key(user_id, original_name)
            except InvalidRequest as e:
                raise CorruptState(f"Stored original name is not a valid file name: {original_name!r}") from e

            with tracer.start_as_current_span("restore.copy_to_active"):
                try:
                    await self.store.copy(self.trash_bucket, trash_key, self.active_bucket, restore_key)
                except NotFound as e:
                    # The sweeper or a permanent delete won the race.
                    raise NotFound("File not found in trash") from e

            with tracer.start_as_current_span("restore.write_metadata"):
                await self.store.set_metadata(
                    self.active_bucket,
                    restore_key,
                    active_metadata(user_id, original_name, META_RESTORED_AT, millis_to_iso(self.clock())),
                    content_type=metadata.original_content_type or info.content_type,
                )

            with tracer.start_as_current_span("restore.delete_trash"):
                try:
                    await self.store.delete(self.trash_bucket, trash_key)
                except NotFound:
                    logger.info(f"Trash object {trash_key} already removed after restore copy")

        logger.info(f"Restored {trash_key} to {restore_key}")
        return OperationResult(name=original_name, path=restore_key, message="File restored successfully")

    @trace_operation("permanent_delete")
    async def permanent_delete(self, user_id: str, trash_key: str) -> OperationResult:
        with self._observe("permanent_delete"):
            decoded = self._check_trash_key(trash_key)
            info = await self._stat_trash(trash_key)
            metadata = await self._trash_metadata(info)
            self._authorize(user_id, metadata, trash_key)

            try:
                await self.store.delete(self.trash_bucket, trash_key)
            except NotFound as e:
                raise NotFound("File not found in trash") from e

        logger.info(f"Permanently deleted {trash_key}")
        return OperationResult(
            name=metadata.original_name or decoded.file_name_fragment,
            path=trash_key,
            message="File permanently deleted",
        )

    # Primitives for the expiry sweeper

    async def list_all_trash(self) -> list[ObjectInfo]:
        """Every trash entry across all users. Privileged; not for per-user listing."""
        return await self.store.list_by_prefix(self.trash_bucket, keys.USERS_ROOT)

    async def purge_trash_object(self, trash_key: str) -> bool:
        """Delete a trash entry unconditionally. False when it was already gone."""
        try:
            await self.store.delete(self.trash_bucket, trash_key)
        except NotFound:
            logger.debug(f"Trash object {trash_key} already gone; restore or another sweep won")
            return False
        return True
