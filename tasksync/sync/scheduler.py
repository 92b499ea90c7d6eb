"""
Periodic sync runner.

Sweeps every stored credential on an interval and runs a pull sync for each
(user, provider) pair. Busy pairs are skipped; a failing pair is logged and
never stops the sweep.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ..errors import SyncInProgressError, TaskSyncError

if TYPE_CHECKING:
    from ..service import TaskSyncService

logger = logging.getLogger(__name__)


class PeriodicSyncRunner:
    """Timer loop around TaskSyncService.sync()."""

    def __init__(self, service: "TaskSyncService", interval_minutes: float):
        self._service = service
        self._interval_s = interval_minutes * 60
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        if self._interval_s <= 0:
            logger.info("Periodic sync disabled (interval is 0)")
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._timer_loop())
        logger.info(f"PeriodicSyncRunner started (every {self._interval_s / 60:g} min)")

    async def stop(self) -> None:
        self._running = False
        self._wake.set()  # wake the loop so it can exit
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("PeriodicSyncRunner stopped")

    async def _timer_loop(self) -> None:
        while self._running:
            self._wake.clear()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval_s)
            except asyncio.TimeoutError:
                pass

            if not self._running:
                return

            try:
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Periodic sync sweep error: {e}", exc_info=True)

    async def sweep(self) -> int:
        """Sync every connected pair once. Returns how many passes ran."""
        ran = 0
        for credential in await self._service.credential_store.list_all():
            user_id, provider = credential.user_id, credential.provider
            try:
                await self._service.sync(user_id, provider, wait=False)
                ran += 1
            except SyncInProgressError:
                logger.debug(f"Skipping busy {provider} sync for user {user_id}")
            except TaskSyncError as e:
                logger.warning(f"Scheduled {provider} sync failed for user {user_id}: {e}")
            except Exception as e:
                logger.error(f"Scheduled {provider} sync error for user {user_id}: {e}", exc_info=True)
        return ran
