"""
tasksync TaskStore - persistence for canonical tasks.

Only the queries the sync core needs: lookup by id and by provider link,
insert/save, delete, clearing provider links on disconnect, and per-provider
sync statistics.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..db import Database, Repository
from ..db.repository import affected_rows
from ..models import (
    PROVIDER_LINK_FIELDS,
    Attachment,
    Recurrence,
    SyncStats,
    Task,
    utcnow,
)

logger = logging.getLogger(__name__)


class BaseTaskStore(ABC):

    @abstractmethod
    async def get(self, task_id: str) -> Optional[Task]:
        pass

    @abstractmethod
    async def find_by_provider_link(
        self, user_id: str, provider: str, provider_task_id: str
    ) -> Optional[Task]:
        pass

    @abstractmethod
    async def insert(self, task: Task) -> Task:
        pass

    @abstractmethod
    async def save(self, task: Task) -> Task:
        """Insert or update by task.id."""

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        pass

    @abstractmethod
    async def clear_provider_link(self, user_id: str, provider: str) -> int:
        """Unlink every task of the user from provider. Tasks are kept."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Task]:
        pass

    @abstractmethod
    async def sync_stats(self, user_id: str, provider: str) -> SyncStats:
        pass


def _link_column(provider: str) -> str:
    try:
        return PROVIDER_LINK_FIELDS[provider]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider}")


class TaskRepository(Repository, BaseTaskStore):
    """Postgres task storage (table: tasks)."""

    TABLE_NAME = "tasks"

    _COLUMNS = (
        "id", "user_id", "name", "description", "due_date", "completed",
        "completed_at", "recurrence", "microsoft_todo_id", "google_task_id",
        "attachments", "parent_task_id", "created_at", "updated_at",
    )

    def __init__(self, db: Database):
        super().__init__(db)

    @staticmethod
    def _from_row(row: Dict[str, Any]) -> Task:
        attachments = row.get("attachments")
        if isinstance(attachments, str):
            attachments = json.loads(attachments)
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
            due_date=row["due_date"],
            completed=row["completed"],
            completed_at=row["completed_at"],
            recurrence=Recurrence.parse(row["recurrence"]),
            microsoft_todo_id=row["microsoft_todo_id"],
            google_task_id=row["google_task_id"],
            attachments=(
                [Attachment.from_dict(a) for a in attachments] if attachments is not None else None
            ),
            parent_task_id=row["parent_task_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _values(task: Task) -> list:
        return [
            task.id,
            task.user_id,
            task.name,
            task.description,
            task.due_date,
            task.completed,
            task.completed_at,
            task.recurrence.value,
            task.microsoft_todo_id,
            task.google_task_id,
            json.dumps([a.to_dict() for a in task.attachments]) if task.attachments is not None else None,
            task.parent_task_id,
            task.created_at,
            task.updated_at,
        ]

    async def get(self, task_id: str) -> Optional[Task]:
        row = await self._fetch_one("id = $1", task_id)
        return self._from_row(row) if row else None

    async def find_by_provider_link(
        self, user_id: str, provider: str, provider_task_id: str
    ) -> Optional[Task]:
        column = _link_column(provider)
        row = await self._fetch_one(f"user_id = $1 AND {column} = $2", user_id, provider_task_id)
        return self._from_row(row) if row else None

    async def insert(self, task: Task) -> Task:
        placeholders = ", ".join(f"${i + 1}" for i in range(len(self._COLUMNS)))
        row = await self.db.fetchrow(
            f"INSERT INTO tasks ({', '.join(self._COLUMNS)}) VALUES ({placeholders}) RETURNING *",
            *self._values(task),
        )
        return self._from_row(dict(row))

    async def save(self, task: Task) -> Task:
        task.updated_at = utcnow()
        placeholders = ", ".join(f"${i + 1}" for i in range(len(self._COLUMNS)))
        updates = ", ".join(
            f"{col} = EXCLUDED.{col}" for col in self._COLUMNS if col not in ("id", "created_at")
        )
        row = await self.db.fetchrow(
            f"""
            INSERT INTO tasks ({', '.join(self._COLUMNS)}) VALUES ({placeholders})
            ON CONFLICT (id) DO UPDATE SET {updates}
            RETURNING *
            """,
            *self._values(task),
        )
        return self._from_row(dict(row))

    async def delete(self, task_id: str) -> bool:
        result = await self.db.execute("DELETE FROM tasks WHERE id = $1", task_id)
        return result == "DELETE 1"

    async def clear_provider_link(self, user_id: str, provider: str) -> int:
        column = _link_column(provider)
        result = await self.db.execute(
            f"UPDATE tasks SET {column} = NULL, updated_at = NOW() "
            f"WHERE user_id = $1 AND {column} IS NOT NULL",
            user_id,
        )
        count = affected_rows(result)
        logger.info(f"Cleared {provider} links from {count} tasks for user {user_id}")
        return count

    async def list_for_user(self, user_id: str) -> List[Task]:
        rows = await self.db.fetch(
            "SELECT * FROM tasks WHERE user_id = $1 ORDER BY completed, due_date NULLS LAST, created_at DESC",
            user_id,
        )
        return [self._from_row(dict(r)) for r in rows]

    async def sync_stats(self, user_id: str, provider: str) -> SyncStats:
        column = _link_column(provider)
        row = await self.db.fetchrow(
            f"""
            SELECT COUNT(*) AS total,
                   COUNT({column}) AS synced,
                   MAX(updated_at) FILTER (WHERE {column} IS NOT NULL) AS last_sync
            FROM tasks WHERE user_id = $1
            """,
            user_id,
        )
        return SyncStats(
            total_tasks=row["total"],
            synced_tasks=row["synced"],
            last_sync=row["last_sync"],
        )


class MemoryTaskStore(BaseTaskStore):
    """In-process task storage with the same constraints as the Postgres table."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}

    def _check_link_unique(self, task: Task) -> None:
        provider = task.linked_provider()
        if not provider:
            return
        link = task.provider_link(provider)
        for other in self._tasks.values():
            if other.id != task.id and other.user_id == task.user_id and other.provider_link(provider) == link:
                raise ValueError(
                    f"Duplicate {provider} link {link} for user {task.user_id}"
                )

    async def get(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return copy.deepcopy(task) if task else None

    async def find_by_provider_link(
        self, user_id: str, provider: str, provider_task_id: str
    ) -> Optional[Task]:
        _link_column(provider)
        for task in self._tasks.values():
            if task.user_id == user_id and task.provider_link(provider) == provider_task_id:
                return copy.deepcopy(task)
        return None

    async def insert(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise ValueError(f"Task {task.id} already exists")
        self._check_link_unique(task)
        self._tasks[task.id] = copy.deepcopy(task)
        return copy.deepcopy(task)

    async def save(self, task: Task) -> Task:
        self._check_link_unique(task)
        task.updated_at = utcnow()
        self._tasks[task.id] = copy.deepcopy(task)
        return copy.deepcopy(task)

    async def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    async def clear_provider_link(self, user_id: str, provider: str) -> int:
        count = 0
        for task in self._tasks.values():
            if task.user_id == user_id and task.provider_link(provider):
                task.clear_provider_link(provider)
                task.updated_at = utcnow()
                count += 1
        return count

    async def list_for_user(self, user_id: str) -> List[Task]:
        return [copy.deepcopy(t) for t in self._tasks.values() if t.user_id == user_id]

    async def sync_stats(self, user_id: str, provider: str) -> SyncStats:
        tasks = [t for t in self._tasks.values() if t.user_id == user_id]
        linked = [t for t in tasks if t.provider_link(provider)]
        return SyncStats(
            total_tasks=len(tasks),
            synced_tasks=len(linked),
            last_sync=max((t.updated_at for t in linked), default=None),
        )
