"""Tests for the FastAPI routes (in-process via httpx.ASGITransport)"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from tasksync.config import OAuthAppConfig, Settings
from tasksync.constants import GOOGLE, MICROSOFT
from tasksync.models import Recurrence, Task
from tasksync.server.app import api, set_service
from tasksync.service import TaskSyncService


def _token_endpoint(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"access_token": "fresh-access", "expires_in": 3600})


@pytest.fixture
async def service(credential_store, task_store, fake_provider):
    svc = TaskSyncService(
        Settings(
            oauth={
                MICROSOFT: OAuthAppConfig(client_id="ms-id", client_secret="ms-secret"),
                GOOGLE: OAuthAppConfig(client_id="g-id", client_secret="g-secret"),
            }
        ),
        credential_store=credential_store,
        task_store=task_store,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_token_endpoint)),
    )
    svc.providers[MICROSOFT] = fake_provider
    set_service(svc)
    yield svc
    set_service(None)


@pytest.fixture
async def client(service, monkeypatch):
    monkeypatch.delenv("TASKSYNC_API_KEY", raising=False)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=api), base_url="http://test") as c:
        yield c


@pytest.fixture
async def connected(credential_store, credential):
    await credential_store.upsert(credential)
    return credential


# =========================================================================
# OAuth routes
# =========================================================================


class TestConnectRoutes:

    @pytest.mark.asyncio
    async def test_connect_returns_authorization_url(self, client):
        resp = await client.get("/api/integrations/google/connect", params={"user_id": "user-1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["authorization_url"].startswith("https://accounts.google.com/")
        assert "test%2Fapi%2Fintegrations%2Fgoogle%2Fcallback" in body["authorization_url"]
        assert body["state"]

    @pytest.mark.asyncio
    async def test_unknown_provider_is_404(self, client):
        resp = await client.get("/api/integrations/todoist/connect", params={"user_id": "user-1"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_callback_provider_error(self, client):
        resp = await client.get("/api/integrations/google/callback", params={"error": "access_denied"})
        assert resp.status_code == 400
        assert "access_denied" in resp.text

    @pytest.mark.asyncio
    async def test_callback_missing_code(self, client):
        resp = await client.get("/api/integrations/google/callback", params={"state": "s"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_callback_bad_state(self, client):
        resp = await client.get("/api/integrations/google/callback", params={"code": "c", "state": "forged"})
        assert resp.status_code == 400
        assert "state" in resp.text

    @pytest.mark.asyncio
    async def test_callback_success(self, client, credential_store):
        connect = await client.get("/api/integrations/google/connect", params={"user_id": "user-1"})
        state = connect.json()["state"]

        resp = await client.get("/api/integrations/google/callback", params={"code": "c", "state": state})

        assert resp.status_code == 200
        assert "Connected!" in resp.text
        assert (await credential_store.find("user-1", GOOGLE)).access_token == "fresh-access"

    @pytest.mark.asyncio
    async def test_callback_redirects_when_configured(self, client, service):
        service.settings.success_redirect_url = "https://app.example.com/settings"
        connect = await client.get("/api/integrations/google/connect", params={"user_id": "user-1"})

        resp = await client.get(
            "/api/integrations/google/callback", params={"code": "c", "state": connect.json()["state"]}
        )

        assert resp.status_code == 307
        assert resp.headers["location"] == "https://app.example.com/settings?success=true&provider=google"


# =========================================================================
# Sync, status, disconnect
# =========================================================================


class TestSyncRoutes:

    @pytest.mark.asyncio
    async def test_sync_not_connected(self, client):
        resp = await client.post("/api/integrations/microsoft/sync", params={"user_id": "user-1"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_sync_runs(self, client, connected, fake_provider, remote_task):
        fake_provider.remote = [remote_task("r1", "Buy milk")]
        resp = await client.post("/api/integrations/microsoft/sync", params={"user_id": "user-1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["results"] == {"created": 1, "updated": 0, "skipped": 0, "errors": 0}
        assert body["tasks"][0]["microsoft_todo_id"] == "r1"

    @pytest.mark.asyncio
    async def test_sync_busy_is_409(self, client, connected, service):
        async with service.locks.hold(("user-1", MICROSOFT)):
            resp = await client.post(
                "/api/integrations/microsoft/sync", params={"user_id": "user-1"}, json={"wait": False}
            )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_sync_needs_reconnect_is_401(self, client, credential_store, credential):
        credential.refresh_token = None
        credential.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await credential_store.upsert(credential)
        resp = await client.post("/api/integrations/microsoft/sync", params={"user_id": "user-1"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_status(self, client, connected):
        resp = await client.get("/api/integrations/microsoft/status", params={"user_id": "user-1"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "connected"

    @pytest.mark.asyncio
    async def test_disconnect(self, client, connected, task_store):
        await task_store.insert(Task(user_id="user-1", name="Linked", microsoft_todo_id="ms-1"))
        resp = await client.delete("/api/integrations/microsoft/disconnect", params={"user_id": "user-1"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "unlinked_tasks": 1}

    @pytest.mark.asyncio
    async def test_disconnect_not_connected(self, client):
        resp = await client.delete("/api/integrations/google/disconnect", params={"user_id": "user-1"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_lists_not_connected(self, client):
        resp = await client.get("/api/integrations/google/lists", params={"user_id": "user-1"})
        assert resp.status_code == 400


# =========================================================================
# API key
# =========================================================================


class TestApiKey:

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self, client, monkeypatch):
        monkeypatch.setenv("TASKSYNC_API_KEY", "secret")
        resp = await client.get("/api/integrations/google/status", params={"user_id": "user-1"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_header_key_accepted(self, client, monkeypatch):
        monkeypatch.setenv("TASKSYNC_API_KEY", "secret")
        resp = await client.get(
            "/api/integrations/google/status", params={"user_id": "user-1"}, headers={"X-API-Key": "secret"}
        )
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_bearer_key_accepted(self, client, monkeypatch):
        monkeypatch.setenv("TASKSYNC_API_KEY", "secret")
        resp = await client.get(
            "/api/tasks", params={"user_id": "user-1"}, headers={"Authorization": "Bearer secret"}
        )
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_callback_needs_no_key(self, client, monkeypatch):
        monkeypatch.setenv("TASKSYNC_API_KEY", "secret")
        resp = await client.get("/api/integrations/google/callback", params={"error": "denied"})
        assert resp.status_code == 400


# =========================================================================
# Task routes
# =========================================================================


class TestTaskRoutes:

    @pytest.mark.asyncio
    async def test_create_and_list(self, client):
        resp = await client.post(
            "/api/tasks", json={"user_id": "user-1", "name": "Plan trip", "due_date": "2024-06-01"}
        )
        assert resp.status_code == 200
        assert resp.json()["push"]["action"] == "skipped"

        listed = await client.get("/api/tasks", params={"user_id": "user-1"})
        tasks = listed.json()["tasks"]
        assert [t["name"] for t in tasks] == ["Plan trip"]
        assert tasks[0]["due_date"] == "2024-06-01"

    @pytest.mark.asyncio
    async def test_create_pushes_when_connected(self, client, connected, fake_provider):
        resp = await client.post("/api/tasks", json={"user_id": "user-1", "name": "Linked"})
        body = resp.json()
        assert body["push"]["action"] == "created"
        assert body["task"]["microsoft_todo_id"] == "remote-1"

    @pytest.mark.asyncio
    async def test_invalid_recurrence(self, client):
        resp = await client.post(
            "/api/tasks", json={"user_id": "user-1", "name": "X", "recurrence": "fortnightly"}
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_update(self, client, task_store):
        task = await task_store.insert(Task(user_id="user-1", name="Old"))
        resp = await client.put(f"/api/tasks/{task.id}", json={"name": "New", "recurrence": "weekly"})
        assert resp.status_code == 200
        stored = await task_store.get(task.id)
        assert stored.name == "New"
        assert stored.recurrence is Recurrence.WEEKLY

    @pytest.mark.asyncio
    async def test_update_unknown(self, client):
        resp = await client.put("/api/tasks/missing", json={"name": "New"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_complete_recurring(self, client, task_store):
        task = await task_store.insert(
            Task(user_id="user-1", name="Standup", recurrence=Recurrence.DAILY)
        )
        resp = await client.post(f"/api/tasks/{task.id}/complete")
        assert resp.status_code == 200
        body = resp.json()
        assert body["snapshot"]["completed"] is True
        assert body["task"]["completed"] is False

    @pytest.mark.asyncio
    async def test_uncomplete_recurring_is_409(self, client, task_store):
        task = await task_store.insert(Task(user_id="user-1", name="Standup", recurrence=Recurrence.DAILY))
        resp = await client.post(f"/api/tasks/{task.id}/uncomplete")
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_complete_unknown(self, client):
        resp = await client.post("/api/tasks/missing/complete")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, client, task_store):
        task = await task_store.insert(Task(user_id="user-1", name="Bye"))
        resp = await client.delete(f"/api/tasks/{task.id}")
        assert resp.status_code == 200
        assert resp.json()["deleted"] is True
        assert await task_store.get(task.id) is None
