"""
Tests for the Postgres-backed stores.

Database is mocked; these check row mapping and the SQL arguments, not Postgres.
"""

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tasksync.constants import GOOGLE, MICROSOFT
from tasksync.credentials import CredentialStore
from tasksync.db.initialize import MIGRATIONS
from tasksync.db.repository import affected_rows
from tasksync.models import Attachment, Credential, Recurrence, Task
from tasksync.tasks import TaskRepository

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _mock_db():
    db = MagicMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 0")
    return db


def _task_row(**overrides):
    row = {
        "id": "t1",
        "user_id": "user-1",
        "name": "Pay rent",
        "description": None,
        "due_date": date(2024, 2, 1),
        "completed": False,
        "completed_at": None,
        "recurrence": "monthly",
        "microsoft_todo_id": None,
        "google_task_id": "g-1",
        "attachments": None,
        "parent_task_id": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


# =========================================================================
# Helpers
# =========================================================================


class TestAffectedRows:

    def test_parses_status(self):
        assert affected_rows("UPDATE 3") == 3
        assert affected_rows("DELETE 0") == 0

    def test_garbage_is_zero(self):
        assert affected_rows("") == 0
        assert affected_rows(None) == 0


class TestMigrations:

    def test_versions_are_sequential(self):
        versions = [v for v, _, _ in MIGRATIONS]
        assert versions == list(range(1, len(MIGRATIONS) + 1))


# =========================================================================
# CredentialStore
# =========================================================================


class TestCredentialStore:

    @pytest.mark.asyncio
    async def test_find_missing(self):
        db = _mock_db()
        assert await CredentialStore(db).find("user-1", GOOGLE) is None
        args = db.fetchrow.call_args.args
        assert "FROM integrations" in args[0]
        assert args[1:] == ("user-1", GOOGLE)

    @pytest.mark.asyncio
    async def test_upsert_maps_row(self):
        db = _mock_db()
        db.fetchrow.return_value = {
            "user_id": "user-1",
            "provider": MICROSOFT,
            "access_token": "at",
            "refresh_token": "rt",
            "expires_at": NOW,
            "scope": None,
            "created_at": NOW,
            "updated_at": NOW,
        }
        cred = Credential(user_id="user-1", provider=MICROSOFT, access_token="at", refresh_token="rt")

        stored = await CredentialStore(db).upsert(cred)

        assert stored.scope == ""
        assert stored.expires_at == NOW
        assert "ON CONFLICT (user_id, provider)" in db.fetchrow.call_args.args[0]

    @pytest.mark.asyncio
    async def test_delete(self):
        db = _mock_db()
        db.execute.return_value = "DELETE 1"
        assert await CredentialStore(db).delete("user-1", GOOGLE) is True


# =========================================================================
# TaskRepository
# =========================================================================


class TestTaskRepository:

    @pytest.mark.asyncio
    async def test_find_by_provider_link_uses_column(self):
        db = _mock_db()
        db.fetchrow.return_value = _task_row()

        task = await TaskRepository(db).find_by_provider_link("user-1", GOOGLE, "g-1")

        assert "google_task_id = $2" in db.fetchrow.call_args.args[0]
        assert task.google_task_id == "g-1"
        assert task.recurrence is Recurrence.MONTHLY

    @pytest.mark.asyncio
    async def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            await TaskRepository(_mock_db()).find_by_provider_link("user-1", "todoist", "x")

    @pytest.mark.asyncio
    async def test_attachments_round_trip_as_json(self):
        db = _mock_db()
        db.fetchrow.return_value = _task_row(
            attachments=json.dumps([{"name": "a.pdf", "size": 10, "origin_url": None}])
        )
        task = Task(user_id="user-1", name="Pay rent", attachments=[Attachment(name="a.pdf", size=10)])

        saved = await TaskRepository(db).insert(task)

        sent = db.fetchrow.call_args.args
        assert json.loads(sent[11]) == [{"name": "a.pdf", "size": 10, "origin_url": None}]
        assert saved.attachments == [Attachment(name="a.pdf", size=10)]

    @pytest.mark.asyncio
    async def test_clear_provider_link_counts_rows(self):
        db = _mock_db()
        db.execute.return_value = "UPDATE 4"
        assert await TaskRepository(db).clear_provider_link("user-1", MICROSOFT) == 4
        assert "microsoft_todo_id = NULL" in db.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_sync_stats(self):
        db = _mock_db()
        db.fetchrow.return_value = {"total": 5, "synced": 3, "last_sync": NOW}
        stats = await TaskRepository(db).sync_stats("user-1", GOOGLE)
        assert stats.total_tasks == 5
        assert stats.synced_tasks == 3
        assert stats.last_sync == NOW
