#!/usr/bin/env python3
"""
Sync Sweep Script - run one pull sync for every connected (user, provider) pair

Meant for cron or one-off backfills when the in-process periodic runner is
disabled. Pairs already syncing are skipped.

Usage:
    # config.yaml (or $TASKSYNC_CONFIG) must point at the database
    python scripts/sync_all.py [--config config.yaml] [--provider google] [--dry-run]
"""

import argparse
import asyncio
import logging
import sys

from tasksync import TaskSyncError, TaskSyncService, load_settings
from tasksync.errors import SyncInProgressError

logger = logging.getLogger(__name__)


async def sweep_all(service: TaskSyncService, provider: str = None, dry_run: bool = False) -> int:
    """Sync every stored pair once. Returns the process exit status."""
    credentials = await service.credential_store.list_all()
    if provider:
        credentials = [c for c in credentials if c.provider == provider]
    logger.info(f"{len(credentials)} connected pair(s) to sync")

    failed = 0
    for credential in credentials:
        label = f"{credential.user_id}/{credential.provider}"
        if dry_run:
            logger.info(f"[dry-run] would sync {label}")
            continue
        try:
            result = await service.sync(credential.user_id, credential.provider, wait=False)
        except SyncInProgressError:
            logger.info(f"Skipping {label}: sync already running")
            continue
        except TaskSyncError as e:
            failed += 1
            logger.warning(f"{label}: {e}")
            continue
        if not result.success:
            failed += 1
        logger.info(f"{label}: {result.counts.to_dict()} {result.error or ''}")

    logger.info(f"Sweep finished, {failed} pair(s) with errors")
    return 1 if failed else 0


async def run(config: str, provider: str = None, dry_run: bool = False) -> int:
    settings = load_settings(config)
    if not settings.database:
        logger.error("No database configured; nothing to sweep")
        return 1

    service = TaskSyncService(settings)
    await service.initialize()
    try:
        return await sweep_all(service, provider, dry_run)
    finally:
        await service.shutdown()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Run one sync pass for every connected pair")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--provider", choices=["microsoft", "google"], help="Only sync this provider")
    parser.add_argument("--dry-run", action="store_true", help="List pairs without syncing")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.config, args.provider, args.dry_run)))


if __name__ == "__main__":
    main()
