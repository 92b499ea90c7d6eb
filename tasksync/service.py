"""
TaskSyncService - the facade HTTP handlers and jobs talk to.

Wires the credential and task stores, one OAuth token manager and one task
provider per supported provider, the sync engine, the push-back path and the
recurrence roller. Construction is synchronous; stores are created on first
use (Postgres when `database` is configured, in-memory otherwise).

Example:
    service = TaskSyncService(load_settings())
    url, state = await service.authorization_url("user-1", "google", redirect_uri)
    ...
    result = await service.sync("user-1", "google")
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import httpx

from .config import Settings
from .constants import SUPPORTED_PROVIDERS
from .credentials import BaseCredentialStore, CredentialStore, MemoryCredentialStore
from .errors import (
    InvalidStateError,
    NotConnectedError,
    ReauthRequiredError,
    SyncInProgressError,
    TaskNotFoundError,
)
from .models import Credential, IntegrationStatus, SyncResult, Task, utcnow
from .oauth import OAUTH_CLASSES, BaseOAuth, OAuthStateStore
from .providers import BaseTaskProvider, TaskProviderFactory
from .recurrence import RecurrenceRoller
from .sync import KeyedLock, PeriodicSyncRunner, PushBackService, PushResult, SyncEngine
from .tasks import BaseTaskStore, MemoryTaskStore, TaskRepository

logger = logging.getLogger(__name__)


@dataclass
class LocalChangeResult:
    """A local task mutation and the outcome of pushing it upstream."""
    task: Task
    push: PushResult
    snapshot: Optional[Task] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "push": self.push.to_dict(),
        }


class TaskSyncService:
    """Entry point for connecting providers, syncing and mutating tasks."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        credential_store: Optional[BaseCredentialStore] = None,
        task_store: Optional[BaseTaskStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or Settings()
        self._credential_store = credential_store
        self._task_store = task_store
        self._database = None
        self._initialized = False

        self.state_store = OAuthStateStore(clock=clock)
        self.token_managers: Dict[str, BaseOAuth] = {
            name: OAUTH_CLASSES[name](
                self.settings.oauth_app(name),
                state_store=self.state_store,
                http_client=http_client,
                clock=clock,
            )
            for name in SUPPORTED_PROVIDERS
        }
        self.providers: Dict[str, BaseTaskProvider] = {
            name: TaskProviderFactory.create_provider(name, http_client=http_client)
            for name in SUPPORTED_PROVIDERS
        }
        self.locks = KeyedLock()
        # (user_id, provider) pairs whose refresh token was rejected
        self._needs_reconnect: Set[Tuple[str, str]] = set()

        self._engine: Optional[SyncEngine] = None
        self._push: Optional[PushBackService] = None
        self._roller: Optional[RecurrenceRoller] = None
        self._runner: Optional[PeriodicSyncRunner] = None

    # ── Lifecycle ──

    async def initialize(self) -> None:
        """Create stores (and the schema) on first use. Safe to call twice."""
        if self._initialized:
            return

        if self._credential_store is None or self._task_store is None:
            if self.settings.database:
                from .db import Database, ensure_schema

                self._database = Database(dsn=self.settings.database)
                await self._database.initialize()
                await ensure_schema(self._database)
                self._credential_store = self._credential_store or CredentialStore(self._database)
                self._task_store = self._task_store or TaskRepository(self._database)
            else:
                logger.warning("No database configured. Using in-memory stores; data is lost on restart.")
                self._credential_store = self._credential_store or MemoryCredentialStore()
                self._task_store = self._task_store or MemoryTaskStore()

        self._engine = SyncEngine(self._credential_store, self._task_store)
        self._push = PushBackService(
            self._credential_store, self._task_store, self.providers, self.token_managers
        )
        self._roller = RecurrenceRoller(self._task_store)
        self._initialized = True
        logger.info("TaskSyncService initialized")

    async def start_scheduler(self) -> None:
        await self.initialize()
        if self._runner is None:
            self._runner = PeriodicSyncRunner(self, self.settings.sync.interval_minutes)
        await self._runner.start()

    async def shutdown(self) -> None:
        try:
            if self._runner:
                await self._runner.stop()
            if self._database:
                await self._database.close()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")
        finally:
            self._runner = None
            self._database = None
            self._initialized = False
            logger.info("TaskSyncService shut down")

    @property
    def credential_store(self) -> BaseCredentialStore:
        if self._credential_store is None:
            raise RuntimeError("TaskSyncService not initialized. Call await initialize() first.")
        return self._credential_store

    @property
    def task_store(self) -> BaseTaskStore:
        if self._task_store is None:
            raise RuntimeError("TaskSyncService not initialized. Call await initialize() first.")
        return self._task_store

    # ── Helpers ──

    def _token_manager(self, provider: str) -> BaseOAuth:
        try:
            return self.token_managers[provider]
        except KeyError:
            raise ValueError(f"Unsupported provider: {provider}")

    def _redirect_uri(self, provider: str, base_url: Optional[str]) -> str:
        configured = self.settings.oauth_app(provider).redirect_uri
        if configured:
            return configured
        base_url = (base_url or self.settings.public_base_url or "").rstrip("/")
        return f"{base_url}/api/integrations/{provider}/callback"

    async def _persist_refreshed(self, credential: Credential) -> None:
        await self.credential_store.upsert(credential)

    async def _access_token(self, user_id: str, provider: str) -> str:
        credential = await self.credential_store.find(user_id, provider)
        if not credential or not credential.access_token:
            raise NotConnectedError(
                f"{provider} is not connected for user {user_id}", user_id=user_id, provider=provider
            )
        try:
            return await self._token_manager(provider).get_valid_access_token(
                credential, on_refreshed=self._persist_refreshed
            )
        except ReauthRequiredError:
            self._needs_reconnect.add((user_id, provider))
            raise

    async def _get_task(self, task_id: str) -> Task:
        task = await self.task_store.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task

    # ── OAuth ──

    async def authorization_url(
        self, user_id: str, provider: str, base_url: Optional[str] = None
    ) -> Tuple[str, str]:
        """Return (authorization_url, state) for connecting provider."""
        manager = self._token_manager(provider)
        return manager.build_authorization_url(user_id, self._redirect_uri(provider, base_url))

    async def handle_callback(
        self,
        provider: str,
        code: str,
        state: str,
        base_url: Optional[str] = None,
    ) -> Credential:
        """Validate state, exchange the code and store the credential."""
        await self.initialize()
        manager = self._token_manager(provider)
        user_id = manager.consume_state(state)
        if not user_id:
            raise InvalidStateError("Invalid or expired OAuth state", provider=provider)

        credential = await manager.exchange_code_for_tokens(
            user_id, code, self._redirect_uri(provider, base_url)
        )
        existing = await self.credential_store.find(user_id, provider)
        if existing and not credential.refresh_token:
            credential.refresh_token = existing.refresh_token
        credential = await self.credential_store.upsert(credential)
        self._needs_reconnect.discard((user_id, provider))
        logger.info(f"{provider} connected for user {user_id}")
        return credential

    # ── Sync ──

    async def sync(
        self,
        user_id: str,
        provider: str,
        wait: bool = True,
        deadline: Optional[float] = None,
        include_completed: Optional[bool] = None,
    ) -> SyncResult:
        """
        Pull-sync provider into the local store.

        At most one pass per (user, provider) runs at a time. With wait=False
        a busy pair raises SyncInProgressError instead of queueing.
        """
        await self.initialize()
        manager = self._token_manager(provider)
        key = (user_id, provider)
        if not wait and self.locks.locked(key):
            raise SyncInProgressError(
                f"{provider} sync already running for user {user_id}", user_id=user_id, provider=provider
            )

        if deadline is None and self.settings.sync.timeout_seconds:
            deadline = self.settings.sync.timeout_seconds
        if include_completed is None:
            include_completed = self.settings.sync.include_completed

        async with self.locks.hold(key):
            try:
                return await self._engine.reconcile(
                    user_id,
                    self.providers[provider],
                    manager,
                    deadline=deadline,
                    include_completed=include_completed,
                )
            except ReauthRequiredError:
                self._needs_reconnect.add(key)
                raise

    async def disconnect(self, user_id: str, provider: str) -> int:
        """Unlink the user's tasks from provider and delete the credential.

        Tasks are kept. Returns how many tasks were unlinked.
        """
        await self.initialize()
        self._token_manager(provider)
        async with self.locks.hold((user_id, provider)):
            credential = await self.credential_store.find(user_id, provider)
            if not credential:
                raise NotConnectedError(
                    f"{provider} is not connected for user {user_id}", user_id=user_id, provider=provider
                )
            cleared = await self.task_store.clear_provider_link(user_id, provider)
            await self.credential_store.delete(user_id, provider)
        self._needs_reconnect.discard((user_id, provider))
        logger.info(f"{provider} disconnected for user {user_id}; unlinked {cleared} tasks")
        return cleared

    async def status(self, user_id: str, provider: str) -> Dict[str, Any]:
        await self.initialize()
        manager = self._token_manager(provider)
        credential = await self.credential_store.find(user_id, provider)

        if not credential:
            state = IntegrationStatus.NOT_CONNECTED
        elif (user_id, provider) in self._needs_reconnect or (
            not credential.refresh_token and manager.needs_refresh(credential)
        ):
            state = IntegrationStatus.NEEDS_RECONNECT
        else:
            state = IntegrationStatus.CONNECTED

        stats = await self.task_store.sync_stats(user_id, provider)
        return {
            "provider": provider,
            "status": state.value,
            "connected": state != IntegrationStatus.NOT_CONNECTED,
            "expires_at": credential.expires_at.isoformat() if credential and credential.expires_at else None,
            "stats": stats.to_dict(),
        }

    async def lists(self, user_id: str, provider: str) -> List[Dict[str, Any]]:
        await self.initialize()
        access_token = await self._access_token(user_id, provider)
        return await self.providers[provider].list_task_lists(access_token)

    async def test_connection(self, user_id: str, provider: str) -> Dict[str, Any]:
        await self.initialize()
        access_token = await self._access_token(user_id, provider)
        return await self._token_manager(provider).test_connection(access_token)

    # ── Local mutations ──

    async def complete_task(self, task_id: str, now: Optional[datetime] = None) -> LocalChangeResult:
        await self.initialize()
        task = await self._get_task(task_id)
        rollover = await self._roller.complete(task, now=now)
        push = await self._push.push_local_change(rollover.task.user_id, rollover.task)
        return LocalChangeResult(task=rollover.task, push=push, snapshot=rollover.snapshot)

    async def uncomplete_task(self, task_id: str) -> LocalChangeResult:
        await self.initialize()
        task = await self._roller.uncomplete(await self._get_task(task_id))
        push = await self._push.push_local_change(task.user_id, task)
        return LocalChangeResult(task=task, push=push)

    async def save_local_edit(self, task: Task, provider: Optional[str] = None) -> LocalChangeResult:
        """Persist a local edit, then push it to the linked (or chosen) provider."""
        await self.initialize()
        saved = await self.task_store.save(task)
        push = await self._push.push_local_change(saved.user_id, saved, provider=provider)
        if push.action == "created":
            saved = await self._get_task(saved.id)
        return LocalChangeResult(task=saved, push=push)

    async def delete_local_task(self, task_id: str) -> PushResult:
        await self.initialize()
        task = await self._get_task(task_id)
        await self.task_store.delete(task_id)
        return await self._push.push_local_deletion(task.user_id, task)
