#!/usr/bin/env python3
"""Trash sweeper: permanently deletes trashed files whose retention window has elapsed.

Runs one sweep immediately on start, then every TRASH_SWEEP_INTERVAL_SECONDS.
A failed cycle is logged and the loop carries on; the next cycle retries.

Usage:
    python workers/run_trash_sweeper_in_loop.py
    python workers/run_trash_sweeper_in_loop.py --once --dry-run
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional


sys.path.insert(0, str(Path(__file__).parent.parent))

from filevault.adapters import ObjectStore
from filevault.adapters import build_object_store
from filevault.config import Config
from filevault.config import get_config
from filevault.errors import FilevaultError
from filevault.logging_config import setup_loki_logging
from filevault.models.results import SweepResult
from filevault.monitoring import MetricsCollector
from filevault.monitoring import set_metrics_collector
from filevault.services.lifecycle import LifecycleManager
from filevault.services.sweeper import ExpirySweeper


logger = logging.getLogger(__name__)


async def run_sweep_cycle(sweeper: ExpirySweeper, dry_run: bool = False) -> Optional[SweepResult]:
    """Run one sweep; failures are logged and reported as None so the loop keeps going."""
    try:
        return await sweeper.cleanup_expired_trash(dry_run=dry_run)
    except FilevaultError as e:
        logger.error(f"Trash sweep failed: {e.kind}: {e.message}", exc_info=True)
    except Exception as e:
        logger.error(f"Error in trash sweep cycle: {e}", exc_info=True)
    return None


async def run_trash_sweeper_loop(
    config: Config,
    *,
    once: bool = False,
    dry_run: bool = False,
    store: Optional[ObjectStore] = None,
) -> Optional[SweepResult]:
    store = store or build_object_store(config)
    manager = LifecycleManager.from_config(store, config)
    sweeper = ExpirySweeper(manager)

    logger.info("Starting trash sweeper service...")
    logger.info(f"Storage backend: {config.storage_backend}")
    logger.info(f"Trash bucket: {config.trash_bucket}")
    logger.info(f"Retention: {config.trash_retention_days} days")
    logger.info(f"Sweep interval: {config.trash_sweep_interval_seconds}s")

    try:
        await manager.ensure_buckets()
        while True:
            logger.info("Trash sweep cycle starting...")
            result = await run_sweep_cycle(sweeper, dry_run=dry_run)
            if once:
                return result

            logger.info(f"Trash sweeper sleeping {config.trash_sweep_interval_seconds}s until next cycle...")
            await asyncio.sleep(config.trash_sweep_interval_seconds)
    finally:
        await store.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Purge expired trash entries")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument("--dry-run", action="store_true", help="Report expired entries without deleting them")
    args = parser.parse_args(argv)

    config = get_config()
    setup_loki_logging(config, "trash-sweeper")
    set_metrics_collector(MetricsCollector())

    try:
        result = asyncio.run(run_trash_sweeper_loop(config, once=args.once, dry_run=args.dry_run))
    except KeyboardInterrupt:
        logger.info("Trash sweeper stopped by user")
        return 0

    if args.once and result is None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
