"""Shared fixtures: in-memory stores, a fixed clock, and a scripted provider."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from tasksync.constants import MICROSOFT
from tasksync.credentials import MemoryCredentialStore
from tasksync.models import CanonicalTask, Credential, RemoteTask, Task
from tasksync.providers import BaseTaskProvider
from tasksync.tasks import MemoryTaskStore

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider(BaseTaskProvider):
    """Provider that yields scripted RemoteTasks and records writes."""

    PROVIDER = MICROSOFT

    def __init__(self):
        super().__init__()
        self.remote: List[RemoteTask] = []
        self.fail_ids = set()
        # (index, exception): raise while listing, before yielding that index
        self.list_error = None
        self.delay = 0.0
        self.write_error: Optional[Exception] = None
        self.created: List[Task] = []
        self.updated: List[str] = []
        self.deleted: List[str] = []
        self.list_calls = 0

    async def list_tasks(self, access_token: str, include_completed: Optional[bool] = None):
        self.list_calls += 1
        for index, item in enumerate(self.remote):
            if self.list_error and self.list_error[0] == index:
                raise self.list_error[1]
            if self.delay:
                await asyncio.sleep(self.delay)
            yield item

    def to_canonical(self, remote: RemoteTask) -> CanonicalTask:
        if remote.id in self.fail_ids:
            raise ValueError(f"cannot transform {remote.id}")
        payload = remote.payload
        completed = payload.get("completed", False)
        return CanonicalTask(
            provider_task_id=remote.id,
            name=remote.title,
            description=payload.get("notes"),
            due_date=payload.get("due"),
            completed=completed,
            completed_at=payload.get("completed_at") if completed else None,
        )

    async def create_remote(self, access_token: str, task: Task) -> str:
        if self.write_error:
            raise self.write_error
        self.created.append(task)
        return f"remote-{len(self.created)}"

    async def update_remote(self, access_token: str, provider_task_id: str, task: Task) -> None:
        if self.write_error:
            raise self.write_error
        self.updated.append(provider_task_id)

    async def delete_remote(self, access_token: str, provider_task_id: str) -> None:
        if self.write_error:
            raise self.write_error
        self.deleted.append(provider_task_id)

    async def list_task_lists(self, access_token: str) -> List[Dict[str, Any]]:
        return [{"id": "list-1", "name": "Tasks"}]

    async def _default_list_id(self, access_token: str) -> Optional[str]:
        return "list-1"


class FakeTokenManager:
    """Stands in for BaseOAuth: hands back the stored token or raises."""

    PROVIDER = MICROSOFT

    def __init__(self):
        self.error: Optional[Exception] = None
        self.calls = 0

    async def get_valid_access_token(self, credential: Credential, on_refreshed=None) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return credential.access_token


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credential_store():
    return MemoryCredentialStore()


@pytest.fixture
def task_store():
    return MemoryTaskStore()


@pytest.fixture
def credential():
    return Credential(
        user_id="user-1",
        provider=MICROSOFT,
        access_token="access-token",
        refresh_token="refresh-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scope="Tasks.ReadWrite offline_access",
    )


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def token_manager():
    return FakeTokenManager()


@pytest.fixture
def remote_task():
    """Factory: remote_task("1", "Buy milk", notes="2%") -> RemoteTask."""
    def _make(task_id: str, title: Optional[str], **payload) -> RemoteTask:
        return RemoteTask(id=task_id, title=title, list_id="list-1", payload=payload)
    return _make
