"""
Base Task Provider - Abstract interface for remote task services

Each provider (Microsoft To Do, Google Tasks) implements the same five
operations. Providers receive an access token per call and never touch the
local store: they translate between the provider's native task shape and
CanonicalTask, and move data over HTTP.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
from dateutil import parser as date_parser

from ..errors import ProviderError
from ..http import HttpClientMixin, raise_for_provider_status
from ..models import CanonicalTask, RemoteTask, Task

logger = logging.getLogger(__name__)


class BaseTaskProvider(HttpClientMixin, ABC):
    """
    Abstract base class for task providers.

    All providers must implement:
    - list_tasks()
    - to_canonical()
    - create_remote()
    - update_remote()
    - delete_remote()
    """

    PROVIDER: str = ""

    # Whether list_tasks() returns completed tasks when the caller does not say
    INCLUDE_COMPLETED_DEFAULT: bool = True

    # Status codes meaning "this task is not in that list"
    NOT_IN_LIST_CODES: Tuple[int, ...] = (404,)

    DEFAULT_PAGE_SIZE: int = 100

    # Entries kept in the task -> list hint before the oldest is evicted
    LIST_HINT_CAPACITY: int = 2048

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        page_size: Optional[int] = None,
    ):
        self._http_client = http_client
        self.page_size = page_size or self.DEFAULT_PAGE_SIZE
        # (token digest, provider task id) -> list id, learned while listing.
        # One instance serves every user; keys never cross tokens.
        self._list_hints: Dict[Tuple[str, str], str] = OrderedDict()

    # ===== Abstract methods (must be implemented by subclasses) =====

    @abstractmethod
    def list_tasks(
        self,
        access_token: str,
        include_completed: Optional[bool] = None,
    ) -> AsyncIterator[RemoteTask]:
        """
        Lazily yield every remote task, following continuation tokens until
        the provider reports no more pages. A new call starts from page one.
        """

    @abstractmethod
    def to_canonical(self, remote: RemoteTask) -> CanonicalTask:
        """Map a provider-native task to canonical task fields."""

    @abstractmethod
    async def create_remote(self, access_token: str, task: Task) -> str:
        """Create task remotely. Returns the provider task id."""

    @abstractmethod
    async def update_remote(self, access_token: str, provider_task_id: str, task: Task) -> None:
        pass

    @abstractmethod
    async def delete_remote(self, access_token: str, provider_task_id: str) -> None:
        """Delete remotely. ProviderError(404) when no list holds the task."""

    # ===== Lists =====

    @abstractmethod
    async def list_task_lists(self, access_token: str) -> List[Dict[str, Any]]:
        """All task lists: [{"id": str, "name": str}, ...]"""

    @abstractmethod
    async def _default_list_id(self, access_token: str) -> Optional[str]:
        pass

    # ===== Common helper methods =====

    def _include_completed(self, include_completed: Optional[bool]) -> bool:
        if include_completed is None:
            return self.INCLUDE_COMPLETED_DEFAULT
        return include_completed

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an authenticated request. Raises ProviderError on non-2xx."""
        headers = {"Authorization": f"Bearer {access_token}"}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"
        try:
            async with self._session() as client:
                response = await client.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
        except httpx.HTTPError as e:
            logger.error(f"{self.PROVIDER} {action} transport error: {e}")
            raise ProviderError(
                None, f"{self.PROVIDER} unreachable during {action}", provider=self.PROVIDER
            ) from e
        raise_for_provider_status(response, self.PROVIDER, action)
        return response

    @staticmethod
    def _hint_key(access_token: str, provider_task_id: str) -> Tuple[str, str]:
        digest = hashlib.sha256(access_token.encode()).hexdigest()[:16]
        return digest, provider_task_id

    def _remember(self, access_token: str, provider_task_id: str, list_id: Optional[str]) -> None:
        if not list_id:
            return
        key = self._hint_key(access_token, provider_task_id)
        self._list_hints[key] = list_id
        self._list_hints.move_to_end(key)
        while len(self._list_hints) > self.LIST_HINT_CAPACITY:
            self._list_hints.popitem(last=False)

    def _forget(self, access_token: str, provider_task_id: str) -> None:
        self._list_hints.pop(self._hint_key(access_token, provider_task_id), None)

    async def _candidate_list_ids(
        self, access_token: str, provider_task_id: str
    ) -> AsyncIterator[str]:
        """Known list first, then the default list, then every other list."""
        seen = set()
        for list_id in (
            self._list_hints.get(self._hint_key(access_token, provider_task_id)),
            await self._default_list_id(access_token),
        ):
            if list_id and list_id not in seen:
                seen.add(list_id)
                yield list_id
        for task_list in await self.list_task_lists(access_token):
            if task_list["id"] not in seen:
                seen.add(task_list["id"])
                yield task_list["id"]

    async def _on_owning_list(
        self,
        access_token: str,
        provider_task_id: str,
        send: Callable[[str], Awaitable[None]],
    ) -> str:
        """Run send(list_id) against each candidate list until one accepts."""
        async for list_id in self._candidate_list_ids(access_token, provider_task_id):
            try:
                await send(list_id)
            except ProviderError as e:
                if e.code in self.NOT_IN_LIST_CODES:
                    continue
                raise
            self._remember(access_token, provider_task_id, list_id)
            return list_id

        raise ProviderError(
            404,
            f"{self.PROVIDER} task {provider_task_id} not found in any list",
            provider=self.PROVIDER,
        )

    def __repr__(self):
        return f"<{self.__class__.__name__} provider={self.PROVIDER}>"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a provider ISO timestamp into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable timestamp from provider: {value}")
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_due_date(value: Optional[str]) -> Optional[date]:
    """Calendar date from a provider due timestamp (the date part only)."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.warning(f"Unparseable due date from provider: {value}")
        return None
