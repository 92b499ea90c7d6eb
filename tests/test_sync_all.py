"""Tests for scripts/sync_all.py (memory stores, scripted provider)"""

import importlib.util
from pathlib import Path

import httpx
import pytest

from tasksync.config import Settings
from tasksync.constants import GOOGLE, MICROSOFT
from tasksync.errors import ProviderError
from tasksync.service import TaskSyncService

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "sync_all.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("sync_all", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


sync_all = _load_script()


@pytest.fixture
async def service(credential_store, task_store, fake_provider):
    svc = TaskSyncService(
        Settings(),
        credential_store=credential_store,
        task_store=task_store,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
    )
    svc.providers[MICROSOFT] = fake_provider
    await svc.initialize()
    yield svc
    await svc.shutdown()


@pytest.fixture
async def connected(credential_store, credential):
    await credential_store.upsert(credential)
    return credential


class TestSweepAll:

    @pytest.mark.asyncio
    async def test_dry_run_syncs_nothing(self, service, connected, fake_provider, task_store, remote_task):
        fake_provider.remote = [remote_task("r1", "Buy milk")]
        assert await sync_all.sweep_all(service, dry_run=True) == 0
        assert fake_provider.list_calls == 0
        assert await task_store.list_for_user("user-1") == []

    @pytest.mark.asyncio
    async def test_successful_sweep_exits_zero(self, service, connected, fake_provider, task_store, remote_task):
        fake_provider.remote = [remote_task("r1", "Buy milk")]
        assert await sync_all.sweep_all(service) == 0
        assert len(await task_store.list_for_user("user-1")) == 1

    @pytest.mark.asyncio
    async def test_failed_pass_exits_one(self, service, connected, fake_provider, remote_task):
        fake_provider.remote = [remote_task("r1", "Buy milk")]
        fake_provider.list_error = (0, ProviderError(500, "graph is down", provider=MICROSOFT))
        assert await sync_all.sweep_all(service) == 1

    @pytest.mark.asyncio
    async def test_unusable_credential_exits_one(self, service, credential_store, credential):
        credential.access_token = ""
        await credential_store.upsert(credential)
        assert await sync_all.sweep_all(service) == 1

    @pytest.mark.asyncio
    async def test_provider_filter(self, service, connected, fake_provider):
        assert await sync_all.sweep_all(service, provider=GOOGLE) == 0
        assert fake_provider.list_calls == 0


class TestRun:

    @pytest.mark.asyncio
    async def test_without_database_exits_one(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("sync:\n  interval_minutes: 0\n")
        assert await sync_all.run(str(config_file)) == 1
