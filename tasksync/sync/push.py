"""
Push-back path - forward local edits and deletions of tasks to their provider.

Best effort: provider, auth and connection failures are logged and reported
in the PushResult. They are never raised and never undo the local change.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..constants import SUPPORTED_PROVIDERS
from ..credentials import BaseCredentialStore
from ..errors import NotConnectedError, ProviderError, ReauthRequiredError
from ..models import Task
from ..oauth import BaseOAuth
from ..providers import BaseTaskProvider
from ..tasks import BaseTaskStore

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    success: bool
    action: str = "skipped"  # created | updated | deleted | skipped
    provider: Optional[str] = None
    provider_task_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "provider": self.provider,
            "provider_task_id": self.provider_task_id,
            "error": self.error,
        }


class PushBackService:
    """Pushes local task mutations to the linked (or chosen) provider."""

    def __init__(
        self,
        credential_store: BaseCredentialStore,
        task_store: BaseTaskStore,
        providers: Mapping[str, BaseTaskProvider],
        token_managers: Mapping[str, BaseOAuth],
    ):
        self.credential_store = credential_store
        self.task_store = task_store
        self.providers = providers
        self.token_managers = token_managers

    async def _access_token(self, user_id: str, provider: str) -> str:
        credential = await self.credential_store.find(user_id, provider)
        if not credential or not credential.access_token:
            raise NotConnectedError(
                f"{provider} is not connected for user {user_id}", user_id=user_id, provider=provider
            )
        return await self.token_managers[provider].get_valid_access_token(
            credential, on_refreshed=self.credential_store.upsert
        )

    async def _first_connected(self, user_id: str) -> Optional[str]:
        for provider in SUPPORTED_PROVIDERS:
            if provider in self.providers and await self.credential_store.find(user_id, provider):
                return provider
        return None

    async def push_local_change(
        self, user_id: str, task: Task, provider: Optional[str] = None
    ) -> PushResult:
        """
        Linked task: update it remotely. Unlinked task: create it on provider
        (or the first connected provider) and store the new id on the task.
        """
        if task.is_history:
            return PushResult(success=True)

        linked = task.linked_provider()
        target = linked or provider or await self._first_connected(user_id)
        if not target:
            return PushResult(success=True)

        try:
            access_token = await self._access_token(user_id, target)
            adapter = self.providers[target]
            if linked:
                provider_task_id = task.provider_link(linked)
                await adapter.update_remote(access_token, provider_task_id, task)
                return PushResult(
                    success=True, action="updated", provider=target, provider_task_id=provider_task_id
                )

            provider_task_id = await adapter.create_remote(access_token, task)
            task.set_provider_link(target, provider_task_id)
            await self.task_store.save(task)
            return PushResult(
                success=True, action="created", provider=target, provider_task_id=provider_task_id
            )
        except (ProviderError, ReauthRequiredError, NotConnectedError) as e:
            logger.warning(f"Push of task {task.id} to {target} failed for user {user_id}: {e}")
            return PushResult(success=False, provider=target, error=str(e))

    async def push_local_deletion(self, user_id: str, task: Task) -> PushResult:
        """Delete the linked remote task. A remote 404 counts as already deleted."""
        linked = task.linked_provider()
        if task.is_history or not linked:
            return PushResult(success=True)

        provider_task_id = task.provider_link(linked)
        try:
            access_token = await self._access_token(user_id, linked)
            await self.providers[linked].delete_remote(access_token, provider_task_id)
        except ProviderError as e:
            if e.is_not_found:
                logger.info(f"{linked} task {provider_task_id} already gone remotely")
                return PushResult(
                    success=True, action="deleted", provider=linked, provider_task_id=provider_task_id
                )
            logger.warning(f"Remote delete of {linked} task {provider_task_id} failed: {e}")
            return PushResult(success=False, provider=linked, provider_task_id=provider_task_id, error=str(e))
        except (ReauthRequiredError, NotConnectedError) as e:
            logger.warning(f"Remote delete of {linked} task {provider_task_id} skipped: {e}")
            return PushResult(success=False, provider=linked, provider_task_id=provider_task_id, error=str(e))

        return PushResult(success=True, action="deleted", provider=linked, provider_task_id=provider_task_id)
