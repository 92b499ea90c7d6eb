"""
Google Tasks Provider - Google Tasks API v1 implementation

Uses Google Tasks API for task operations.
Requires OAuth scope: https://www.googleapis.com/auth/tasks

Sync walks every task list of the user, including completed and hidden
tasks by default.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..constants import DEFAULT_TASK_NAME, GOOGLE
from ..models import Attachment, CanonicalTask, RemoteTask, Task
from .base import BaseTaskProvider, parse_due_date, parse_timestamp

logger = logging.getLogger(__name__)

GOOGLE_TASKS_BASE = "https://tasks.googleapis.com/tasks/v1"


class GoogleTasksProvider(BaseTaskProvider):
    """Google Tasks provider implementation using Tasks API v1."""

    PROVIDER = GOOGLE
    INCLUDE_COMPLETED_DEFAULT = True
    # Google answers 400 for a task id that belongs to another list
    NOT_IN_LIST_CODES = (400, 404)

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        page_size: Optional[int] = None,
        api_base_url: str = GOOGLE_TASKS_BASE,
    ):
        super().__init__(http_client, page_size)
        self.api_base_url = api_base_url.rstrip("/")

    # ===== Lists =====

    async def list_task_lists(self, access_token: str) -> List[Dict[str, Any]]:
        lists: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"maxResults": 100}
            if page_token:
                params["pageToken"] = page_token
            response = await self._request(
                "GET", f"{self.api_base_url}/users/@me/lists", access_token, "list task lists", params=params
            )
            data = response.json()
            lists.extend(
                {"id": item["id"], "name": item.get("title", "")}
                for item in data.get("items", [])
            )
            page_token = data.get("nextPageToken")
            if not page_token:
                return lists

    async def _default_list_id(self, access_token: str) -> Optional[str]:
        """Google returns the default list first."""
        lists = await self.list_task_lists(access_token)
        return lists[0]["id"] if lists else None

    # ===== Read =====

    async def list_tasks(
        self,
        access_token: str,
        include_completed: Optional[bool] = None,
    ) -> AsyncIterator[RemoteTask]:
        show_completed = str(self._include_completed(include_completed)).lower()

        for task_list in await self.list_task_lists(access_token):
            list_id = task_list["id"]
            fetched = 0
            page_token: Optional[str] = None
            while True:
                params: Dict[str, Any] = {
                    "maxResults": self.page_size,
                    "showCompleted": show_completed,
                    "showHidden": show_completed,
                }
                if page_token:
                    params["pageToken"] = page_token

                response = await self._request(
                    "GET", f"{self.api_base_url}/lists/{list_id}/tasks", access_token, "list tasks", params=params
                )
                data = response.json()
                for item in data.get("items", []):
                    self._remember(access_token, item["id"], list_id)
                    fetched += 1
                    yield RemoteTask(id=item["id"], title=item.get("title"), list_id=list_id, payload=item)

                page_token = data.get("nextPageToken")
                if not page_token:
                    break

            logger.info(f"Fetched {fetched} tasks from Google Tasks list {task_list['name']}")

    def to_canonical(self, remote: RemoteTask) -> CanonicalTask:
        task = remote.payload
        completed = task.get("status") == "completed"

        attachments = None
        if task.get("links"):
            attachments = [
                Attachment(name=link.get("description") or link.get("link", ""), origin_url=link.get("link"))
                for link in task["links"]
            ]

        return CanonicalTask(
            provider_task_id=remote.id,
            name=remote.title if remote.has_title else DEFAULT_TASK_NAME,
            description=task.get("notes") or None,
            due_date=parse_due_date(task.get("due")),
            completed=completed,
            completed_at=parse_timestamp(task.get("completed")) if completed else None,
            attachments=attachments,
        )

    # ===== Write =====

    def _task_body(self, task: Task) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "title": task.name,
            "notes": task.description,
            "status": "completed" if task.completed else "needsAction",
            "due": f"{task.due_date.isoformat()}T00:00:00.000Z" if task.due_date else None,
            "completed": None,
        }
        if task.completed:
            # Google rejects status=completed without a completion timestamp
            completed_at = task.completed_at or task.updated_at
            body["completed"] = completed_at.strftime("%Y-%m-%dT%H:%M:%S.000Z")
        return body

    async def create_remote(self, access_token: str, task: Task) -> str:
        list_id = await self._default_list_id(access_token) or "@default"
        body = {k: v for k, v in self._task_body(task).items() if v is not None}
        response = await self._request(
            "POST", f"{self.api_base_url}/lists/{list_id}/tasks", access_token, "create task", json=body
        )
        provider_task_id = response.json()["id"]
        self._remember(access_token, provider_task_id, list_id)
        logger.info(f"Google task created: {provider_task_id}")
        return provider_task_id

    async def update_remote(self, access_token: str, provider_task_id: str, task: Task) -> None:
        body = self._task_body(task)

        async def send(list_id: str) -> None:
            await self._request(
                "PATCH",
                f"{self.api_base_url}/lists/{list_id}/tasks/{provider_task_id}",
                access_token,
                "update task",
                json=body,
            )

        await self._on_owning_list(access_token, provider_task_id, send)
        logger.info(f"Google task updated: {provider_task_id}")

    async def delete_remote(self, access_token: str, provider_task_id: str) -> None:
        async def send(list_id: str) -> None:
            await self._request(
                "DELETE",
                f"{self.api_base_url}/lists/{list_id}/tasks/{provider_task_id}",
                access_token,
                "delete task",
            )

        await self._on_owning_list(access_token, provider_task_id, send)
        self._forget(access_token, provider_task_id)
        logger.info(f"Google task deleted: {provider_task_id}")
