"""Tests for tasksync.models"""

from datetime import date, datetime, timezone

import pytest

from tasksync.constants import GOOGLE, MICROSOFT
from tasksync.models import (
    Attachment,
    CanonicalTask,
    Credential,
    Recurrence,
    SyncCounts,
    SyncResult,
    Task,
)


class TestRecurrence:

    def test_parse_is_case_insensitive(self):
        assert Recurrence.parse("WEEKLY") is Recurrence.WEEKLY

    def test_parse_empty_is_none(self):
        assert Recurrence.parse(None) is Recurrence.NONE
        assert Recurrence.parse("") is Recurrence.NONE

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError):
            Recurrence.parse("fortnightly")


class TestCredential:

    def test_with_tokens_keeps_old_refresh_token(self):
        cred = Credential(user_id="u", provider=GOOGLE, access_token="old", refresh_token="rt")
        expires = datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)
        refreshed = cred.with_tokens("new", expires)
        assert refreshed.access_token == "new"
        assert refreshed.refresh_token == "rt"
        assert refreshed.expires_at == expires
        # original untouched
        assert cred.access_token == "old"

    def test_with_tokens_rotates_refresh_token(self):
        cred = Credential(user_id="u", provider=GOOGLE, access_token="old", refresh_token="rt")
        refreshed = cred.with_tokens("new", datetime.now(timezone.utc), refresh_token="rt2")
        assert refreshed.refresh_token == "rt2"

    def test_repr_hides_tokens(self):
        cred = Credential(user_id="u", provider=GOOGLE, access_token="secret-token")
        assert "secret-token" not in repr(cred)


class TestTaskLinks:

    def test_set_and_read_link(self):
        task = Task(user_id="u", name="A")
        task.set_provider_link(MICROSOFT, "ms-1")
        assert task.provider_link(MICROSOFT) == "ms-1"
        assert task.linked_provider() == MICROSOFT

    def test_second_provider_link_rejected(self):
        task = Task(user_id="u", name="A")
        task.set_provider_link(MICROSOFT, "ms-1")
        with pytest.raises(ValueError, match="already linked"):
            task.set_provider_link(GOOGLE, "g-1")

    def test_clear_link(self):
        task = Task(user_id="u", name="A", google_task_id="g-1")
        task.clear_provider_link(GOOGLE)
        assert task.linked_provider() is None

    def test_unknown_provider(self):
        task = Task(user_id="u", name="A")
        with pytest.raises(ValueError, match="Unknown provider"):
            task.provider_link("todoist")

    def test_to_dict_serializes_dates(self):
        task = Task(
            user_id="u",
            name="A",
            due_date=date(2024, 1, 8),
            attachments=[Attachment(name="a.pdf", size=10)],
        )
        data = task.to_dict()
        assert data["due_date"] == "2024-01-08"
        assert data["recurrence"] == "none"
        assert data["attachments"] == [{"name": "a.pdf", "size": 10, "origin_url": None}]


class TestCanonicalTask:

    def test_differs_and_apply(self):
        task = Task(user_id="u", name="Old")
        canonical = CanonicalTask(provider_task_id="1", name="New", due_date=date(2024, 2, 1))
        assert canonical.differs_from(task)
        canonical.apply_to(task)
        assert task.name == "New"
        assert task.due_date == date(2024, 2, 1)
        assert not canonical.differs_from(task)

    def test_apply_overwrites_with_none(self):
        task = Task(user_id="u", name="A", description="local notes")
        CanonicalTask(provider_task_id="1", name="A").apply_to(task)
        assert task.description is None


class TestSyncResult:

    def test_to_dict_shape(self):
        result = SyncResult(counts=SyncCounts(created=2, errors=1), success=False, error="1 tasks failed to sync")
        data = result.to_dict()
        assert data["results"] == {"created": 2, "updated": 0, "skipped": 0, "errors": 1}
        assert data["success"] is False
        assert data["timed_out"] is False
