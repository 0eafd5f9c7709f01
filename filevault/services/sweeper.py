from __future__ import annotations

import logging
import time

from filevault.models.results import SweepResult
from filevault.monitoring import get_metrics_collector
from filevault.services.lifecycle import LifecycleManager
from filevault.storage import keys
from filevault.tracing import set_span_attributes
from filevault.tracing import trace_operation
from filevault.tracing import tracer


logger = logging.getLogger(__name__)


class ExpirySweeper:
    """System-wide purge of trash entries whose retention window has elapsed.

    Expiry is judged from the timestamp embedded in each trash key alone, so no
    metadata read or ownership check happens here. Safe to run repeatedly and
    alongside user restores: a delete that finds the key already gone lost the
    race and is not counted.
    """

    def __init__(self, manager: LifecycleManager) -> None:
        self.manager = manager

    @trace_operation("cleanup_expired_trash")
    async def cleanup_expired_trash(self, dry_run: bool = False) -> SweepResult:
        started = time.monotonic()
        now = self.manager.clock()
        retention = self.manager.retention

        with tracer.start_as_current_span("cleanup_expired_trash.list") as span:
            entries = await self.manager.list_all_trash()
            set_span_attributes(span, {"trash_entries": len(entries)})

        deleted = 0
        skipped = 0
        for info in entries:
            try:
                decoded = keys.decode_trash_key(info.key)
            except keys.InvalidKey:
                skipped += 1
                logger.warning(f"Sweeper skipping undecodable trash key {info.key}")
                continue

            if not retention.is_expired(decoded.deleted_at_millis, now):
                continue

            if dry_run:
                deleted += 1
                logger.info(f"Dry run: would purge expired trash object {info.key}")
                continue

            if await self.manager.purge_trash_object(info.key):
                deleted += 1
                logger.info(f"Purged expired trash object {info.key}")

        duration = time.monotonic() - started
        get_metrics_collector().record_trash_sweep(deleted, duration=duration, dry_run=dry_run)

        if dry_run:
            message = f"Found {deleted} expired files in trash"
        else:
            message = f"Cleaned up {deleted} expired files from trash"
        logger.info(f"{message} (scanned={len(entries)} skipped={skipped} in {duration:.3f}s)")

        return SweepResult(deleted_count=deleted, skipped_count=skipped, dry_run=dry_run, message=message)
