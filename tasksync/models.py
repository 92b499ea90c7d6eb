"""
tasksync Models - Data structures for credentials, tasks and sync results

This module defines:
- Credential: OAuth tokens for one (user, provider) pair
- Task: canonical local task, optionally linked to one provider task
- RemoteTask / CanonicalTask: transient shapes used during reconciliation
- SyncResult / SyncCounts / SyncStats: outcome of a reconciliation pass
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import GOOGLE, MICROSOFT


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Recurrence(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Recurrence":
        if not value:
            return cls.NONE
        return cls(value.lower())


class IntegrationStatus(str, Enum):
    CONNECTED = "connected"
    NOT_CONNECTED = "not_connected"
    NEEDS_RECONNECT = "needs_reconnect"


@dataclass
class Credential:
    """OAuth credential for one (user, provider) pair."""
    user_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_tokens(
        self,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Return a refreshed copy, keeping the old refresh token if none was issued."""
        refreshed = copy.copy(self)
        refreshed.access_token = access_token
        refreshed.expires_at = expires_at
        refreshed.refresh_token = refresh_token or self.refresh_token
        refreshed.updated_at = utcnow()
        return refreshed

    def __repr__(self):
        return f"<Credential user={self.user_id} provider={self.provider} expires_at={self.expires_at}>"


@dataclass
class Attachment:
    name: str
    size: Optional[int] = None
    origin_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size, "origin_url": self.origin_url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(
            name=data.get("name", ""),
            size=data.get("size"),
            origin_url=data.get("origin_url"),
        )


# Provider name -> Task attribute holding that provider's task id
PROVIDER_LINK_FIELDS = {
    MICROSOFT: "microsoft_todo_id",
    GOOGLE: "google_task_id",
}


def _link_field(provider: str) -> str:
    try:
        return PROVIDER_LINK_FIELDS[provider]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider}")


@dataclass
class Task:
    """Canonical task owned by the local store."""
    user_id: str
    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: Optional[str] = None
    due_date: Optional[date] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    recurrence: Recurrence = Recurrence.NONE

    # Provider links, at most one set
    microsoft_todo_id: Optional[str] = None
    google_task_id: Optional[str] = None

    attachments: Optional[List[Attachment]] = None

    # Set only on completed history snapshots of recurring tasks
    parent_task_id: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE

    @property
    def is_history(self) -> bool:
        return self.parent_task_id is not None

    def provider_link(self, provider: str) -> Optional[str]:
        return getattr(self, _link_field(provider))

    def set_provider_link(self, provider: str, provider_task_id: str) -> None:
        linked = self.linked_provider()
        if linked and linked != provider:
            raise ValueError(
                f"Task {self.id} is already linked to {linked}; cannot link to {provider}"
            )
        setattr(self, _link_field(provider), provider_task_id)

    def clear_provider_link(self, provider: str) -> None:
        setattr(self, _link_field(provider), None)

    def linked_provider(self) -> Optional[str]:
        for provider, attr in PROVIDER_LINK_FIELDS.items():
            if getattr(self, attr):
                return provider
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "recurrence": self.recurrence.value,
            "microsoft_todo_id": self.microsoft_todo_id,
            "google_task_id": self.google_task_id,
            "attachments": (
                [a.to_dict() for a in self.attachments] if self.attachments is not None else None
            ),
            "parent_task_id": self.parent_task_id,
        }


@dataclass
class RemoteTask:
    """Provider-native task as returned by a provider listing. Never persisted."""
    id: str
    title: Optional[str]
    list_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_title(self) -> bool:
        return bool(self.title and self.title.strip())


@dataclass
class CanonicalTask:
    """Task-shaped fields produced by a provider transform."""
    provider_task_id: str
    name: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    attachments: Optional[List[Attachment]] = None

    def differs_from(self, task: Task) -> bool:
        return (
            task.name != self.name
            or task.description != self.description
            or task.due_date != self.due_date
            or task.completed != self.completed
            or task.completed_at != self.completed_at
            or task.attachments != self.attachments
        )

    def apply_to(self, task: Task) -> None:
        """Overwrite the mutable fields of task. Remote always wins."""
        task.name = self.name
        task.description = self.description
        task.due_date = self.due_date
        task.completed = self.completed
        task.completed_at = self.completed_at
        task.attachments = self.attachments
        task.updated_at = utcnow()


@dataclass
class SyncCounts:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass
class SyncResult:
    """Outcome of one reconciliation pass. Not persisted."""
    success: bool = True
    counts: SyncCounts = field(default_factory=SyncCounts)
    tasks: List[Task] = field(default_factory=list)
    error: Optional[str] = None
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "results": self.counts.to_dict(),
            "tasks": [t.to_dict() for t in self.tasks],
            "error": self.error,
            "timed_out": self.timed_out,
        }


@dataclass
class SyncStats:
    total_tasks: int = 0
    synced_tasks: int = 0
    last_sync: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tasks": self.total_tasks,
            "synced_tasks": self.synced_tasks,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
        }
