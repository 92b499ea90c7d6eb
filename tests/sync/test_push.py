"""Tests for tasksync.sync.push: best-effort push of local changes"""

import pytest

from tasksync.constants import MICROSOFT
from tasksync.errors import ProviderError, ReauthRequiredError
from tasksync.models import Task
from tasksync.sync import PushBackService


@pytest.fixture
def push(credential_store, task_store, fake_provider, token_manager):
    return PushBackService(
        credential_store,
        task_store,
        providers={MICROSOFT: fake_provider},
        token_managers={MICROSOFT: token_manager},
    )


@pytest.fixture
async def connected(credential_store, credential):
    await credential_store.upsert(credential)
    return credential


# =========================================================================
# push_local_change
# =========================================================================


class TestPushLocalChange:

    @pytest.mark.asyncio
    async def test_unlinked_task_is_created_and_linked(self, push, connected, task_store, fake_provider):
        task = await task_store.insert(Task(user_id="user-1", name="New idea"))

        result = await push.push_local_change("user-1", task)

        assert result.success is True
        assert result.action == "created"
        assert result.provider == MICROSOFT
        assert result.provider_task_id == "remote-1"
        stored = await task_store.get(task.id)
        assert stored.microsoft_todo_id == "remote-1"
        assert fake_provider.created[0].name == "New idea"

    @pytest.mark.asyncio
    async def test_linked_task_is_updated(self, push, connected, task_store, fake_provider):
        task = await task_store.insert(Task(user_id="user-1", name="Linked", microsoft_todo_id="ms-9"))

        result = await push.push_local_change("user-1", task)

        assert result.action == "updated"
        assert result.provider_task_id == "ms-9"
        assert fake_provider.updated == ["ms-9"]
        assert fake_provider.created == []

    @pytest.mark.asyncio
    async def test_history_snapshot_never_pushed(self, push, connected, fake_provider):
        snapshot = Task(user_id="user-1", name="Done", completed=True, parent_task_id="parent")
        result = await push.push_local_change("user-1", snapshot)
        assert result.success is True
        assert result.action == "skipped"
        assert fake_provider.created == []

    @pytest.mark.asyncio
    async def test_nothing_connected_is_skipped(self, push, fake_provider):
        result = await push.push_local_change("user-1", Task(user_id="user-1", name="Offline"))
        assert result.success is True
        assert result.action == "skipped"
        assert fake_provider.created == []

    @pytest.mark.asyncio
    async def test_explicit_provider_not_connected(self, push, fake_provider):
        result = await push.push_local_change("user-1", Task(user_id="user-1", name="X"), provider=MICROSOFT)
        assert result.success is False
        assert "not connected" in result.error

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_local_task(self, push, connected, task_store, fake_provider):
        fake_provider.write_error = ProviderError(500, "graph is down", provider=MICROSOFT)
        task = await task_store.insert(Task(user_id="user-1", name="Keep me"))

        result = await push.push_local_change("user-1", task)

        assert result.success is False
        assert "graph is down" in result.error
        stored = await task_store.get(task.id)
        assert stored.name == "Keep me"
        assert stored.microsoft_todo_id is None

    @pytest.mark.asyncio
    async def test_reauth_reported(self, push, connected, token_manager):
        token_manager.error = ReauthRequiredError("revoked", provider=MICROSOFT)
        result = await push.push_local_change("user-1", Task(user_id="user-1", name="X"))
        assert result.success is False
        assert result.error == "revoked"


# =========================================================================
# push_local_deletion
# =========================================================================


class TestPushLocalDeletion:

    @pytest.mark.asyncio
    async def test_linked_task_deleted(self, push, connected, fake_provider):
        task = Task(user_id="user-1", name="Gone", microsoft_todo_id="ms-1")
        result = await push.push_local_deletion("user-1", task)
        assert result.success is True
        assert result.action == "deleted"
        assert fake_provider.deleted == ["ms-1"]

    @pytest.mark.asyncio
    async def test_remote_404_counts_as_deleted(self, push, connected, fake_provider):
        fake_provider.write_error = ProviderError(404, "not found", provider=MICROSOFT)
        result = await push.push_local_deletion("user-1", Task(user_id="user-1", name="Gone", microsoft_todo_id="ms-1"))
        assert result.success is True
        assert result.action == "deleted"

    @pytest.mark.asyncio
    async def test_other_failures_reported(self, push, connected, fake_provider):
        fake_provider.write_error = ProviderError(500, "server error", provider=MICROSOFT)
        result = await push.push_local_deletion("user-1", Task(user_id="user-1", name="Gone", microsoft_todo_id="ms-1"))
        assert result.success is False
        assert result.provider_task_id == "ms-1"

    @pytest.mark.asyncio
    async def test_unlinked_task_skipped(self, push, connected, fake_provider):
        result = await push.push_local_deletion("user-1", Task(user_id="user-1", name="Local"))
        assert result.action == "skipped"
        assert fake_provider.deleted == []
