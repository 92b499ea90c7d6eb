"""
Sync Engine - reconcile a provider's remote tasks into the local task store.

Provider-agnostic: the engine receives a BaseTaskProvider and the matching
token manager and never branches on the provider name. Conflict policy is
remote-wins. A pass is idempotent: running it twice without remote changes
creates and updates nothing the second time.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from ..credentials import BaseCredentialStore
from ..errors import NotConnectedError, ProviderError
from ..models import RemoteTask, SyncResult, Task
from ..oauth import BaseOAuth
from ..providers import BaseTaskProvider
from ..tasks import BaseTaskStore

logger = logging.getLogger(__name__)


class SyncEngine:
    """Pull-reconciler for one (user, provider) pair per call."""

    def __init__(
        self,
        credential_store: BaseCredentialStore,
        task_store: BaseTaskStore,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credential_store = credential_store
        self.task_store = task_store
        self._clock = clock

    async def reconcile(
        self,
        user_id: str,
        provider: BaseTaskProvider,
        token_manager: BaseOAuth,
        deadline: Optional[float] = None,
        include_completed: Optional[bool] = None,
    ) -> SyncResult:
        """
        Run one reconciliation pass.

        Args:
            user_id: Local user
            provider: Adapter for the remote service
            token_manager: OAuth manager for the same provider
            deadline: Seconds this pass may run before returning what it has
            include_completed: Override the provider's default completed filter

        Raises:
            NotConnectedError: no credential (or an empty access token)
            ReauthRequiredError: the token cannot be refreshed
        """
        name = provider.PROVIDER
        started = self._clock()

        credential = await self.credential_store.find(user_id, name)
        if not credential or not credential.access_token:
            raise NotConnectedError(
                f"{name} is not connected for user {user_id}", user_id=user_id, provider=name
            )

        result = SyncResult()
        try:
            access_token = await token_manager.get_valid_access_token(
                credential, on_refreshed=self.credential_store.upsert
            )
        except ProviderError as e:
            logger.error(f"{name} token refresh failed for user {user_id}: {e}")
            return self._finish(result, user_id, name, pass_error=e)

        logger.info(f"Starting {name} sync for user {user_id}")
        remote_tasks = provider.list_tasks(access_token, include_completed).__aiter__()
        try:
            while True:
                timeout = None
                if deadline is not None:
                    timeout = deadline - (self._clock() - started)
                    if timeout <= 0:
                        raise asyncio.TimeoutError()
                try:
                    remote = await asyncio.wait_for(remote_tasks.__anext__(), timeout=timeout)
                except StopAsyncIteration:
                    break
                await self._apply(user_id, provider, remote, result)
        except asyncio.TimeoutError:
            logger.warning(f"{name} sync for user {user_id} hit its {deadline}s deadline")
            result.timed_out = True
        except ProviderError as e:
            logger.error(f"{name} sync for user {user_id} aborted: {e}")
            return self._finish(result, user_id, name, pass_error=e)
        finally:
            await remote_tasks.aclose()

        return self._finish(result, user_id, name)

    async def _apply(
        self,
        user_id: str,
        provider: BaseTaskProvider,
        remote: RemoteTask,
        result: SyncResult,
    ) -> None:
        """Upsert one remote task. Failures are counted, never raised."""
        counts = result.counts
        if not remote.has_title:
            counts.skipped += 1
            return

        name = provider.PROVIDER
        try:
            canonical = provider.to_canonical(remote)
            existing = await self.task_store.find_by_provider_link(user_id, name, remote.id)
            if existing is None:
                task = Task(user_id=user_id, name=canonical.name)
                canonical.apply_to(task)
                task.set_provider_link(name, remote.id)
                result.tasks.append(await self.task_store.insert(task))
                counts.created += 1
            elif canonical.differs_from(existing):
                canonical.apply_to(existing)
                result.tasks.append(await self.task_store.save(existing))
                counts.updated += 1
            else:
                result.tasks.append(existing)
                counts.skipped += 1
        except Exception as e:
            counts.errors += 1
            logger.error(f"Failed to sync {name} task {remote.id} for user {user_id}: {e}", exc_info=True)

    def _finish(
        self,
        result: SyncResult,
        user_id: str,
        provider_name: str,
        pass_error: Optional[ProviderError] = None,
    ) -> SyncResult:
        counts = result.counts
        problems = []
        if pass_error is not None:
            problems.append(f"{provider_name} sync failed: {pass_error}")
        if counts.errors:
            problems.append(f"{counts.errors} tasks failed to sync")
        if result.timed_out:
            problems.append("sync timed out before all tasks were processed")

        result.error = "; ".join(problems) or None
        result.success = not problems
        logger.info(
            f"{provider_name} sync for user {user_id} finished: "
            f"created={counts.created} updated={counts.updated} "
            f"skipped={counts.skipped} errors={counts.errors}"
        )
        return result
