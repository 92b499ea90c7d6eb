"""
Microsoft To Do Provider - Microsoft Graph API implementation

Uses Microsoft Graph API for To Do task operations.
Requires OAuth scope: https://graph.microsoft.com/Tasks.ReadWrite

Sync reads the user's default list ("Tasks"); completed tasks are left out
unless the caller asks for them.
"""

import html
import logging
import re
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..constants import DEFAULT_TASK_NAME, MICROSOFT
from ..errors import ProviderError
from ..models import Attachment, CanonicalTask, RemoteTask, Task
from .base import BaseTaskProvider, parse_due_date, parse_timestamp

logger = logging.getLogger(__name__)

GRAPH_TODO_BASE = "https://graph.microsoft.com/v1.0/me/todo"

_TAG_RE = re.compile(r"<[^>]*>")


def strip_html(content: str) -> str:
    return html.unescape(_TAG_RE.sub("", content))


def _graph_datetime(value: datetime) -> Dict[str, str]:
    return {"dateTime": value.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": "UTC"}


class MicrosoftTodoProvider(BaseTaskProvider):
    """Microsoft To Do provider implementation using Graph API."""

    PROVIDER = MICROSOFT
    INCLUDE_COMPLETED_DEFAULT = False
    DEFAULT_PAGE_SIZE = 999

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        page_size: Optional[int] = None,
        api_base_url: str = GRAPH_TODO_BASE,
    ):
        super().__init__(http_client, page_size)
        self.api_base_url = api_base_url.rstrip("/")

    # ===== Lists =====

    async def _fetch_lists(self, access_token: str) -> List[Dict[str, Any]]:
        lists: List[Dict[str, Any]] = []
        url: Optional[str] = f"{self.api_base_url}/lists"
        while url:
            response = await self._request("GET", url, access_token, "list task lists")
            data = response.json()
            lists.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
        return lists

    async def list_task_lists(self, access_token: str) -> List[Dict[str, Any]]:
        lists = await self._fetch_lists(access_token)
        return [
            {
                "id": lst["id"],
                "name": lst.get("displayName", ""),
                "default": lst.get("wellknownListName") == "defaultList",
            }
            for lst in lists
        ]

    async def _default_list_id(self, access_token: str) -> Optional[str]:
        """The well-known default list, or the list named "Tasks". Looked up per call."""
        for lst in await self._fetch_lists(access_token):
            if (
                lst.get("wellknownListName") == "defaultList"
                or (lst.get("displayName") or "").lower() == "tasks"
            ):
                return lst["id"]
        return None

    # ===== Read =====

    async def list_tasks(
        self,
        access_token: str,
        include_completed: Optional[bool] = None,
    ) -> AsyncIterator[RemoteTask]:
        list_id = await self._default_list_id(access_token)
        if not list_id:
            logger.warning("No default Microsoft To Do list found for user")
            return

        params: Optional[Dict[str, Any]] = {"$top": self.page_size}
        if not self._include_completed(include_completed):
            params["$filter"] = "status ne 'completed'"

        url: Optional[str] = f"{self.api_base_url}/lists/{list_id}/tasks"
        fetched = 0
        while url:
            response = await self._request("GET", url, access_token, "list tasks", params=params)
            data = response.json()
            for item in data.get("value", []):
                if item.get("hasAttachments"):
                    item["attachments"] = await self._fetch_attachments(
                        access_token, list_id, item["id"]
                    )
                self._remember(access_token, item["id"], list_id)
                fetched += 1
                yield RemoteTask(id=item["id"], title=item.get("title"), list_id=list_id, payload=item)

            # nextLink already carries the query string
            url = data.get("@odata.nextLink")
            params = None

        logger.info(f"Fetched {fetched} tasks from Microsoft To Do list {list_id}")

    async def _fetch_attachments(
        self, access_token: str, list_id: str, task_id: str
    ) -> List[Dict[str, Any]]:
        try:
            response = await self._request(
                "GET",
                f"{self.api_base_url}/lists/{list_id}/tasks/{task_id}/attachments",
                access_token,
                "list attachments",
            )
        except ProviderError as e:
            # attachments are optional metadata; the task itself still syncs
            logger.warning(f"Could not fetch attachments for task {task_id}: {e}")
            return []
        return response.json().get("value", [])

    def to_canonical(self, remote: RemoteTask) -> CanonicalTask:
        task = remote.payload

        description = None
        body = task.get("body") or {}
        if body.get("content"):
            content = body["content"]
            if body.get("contentType") == "html":
                content = strip_html(content)
            description = content.strip() or None

        completed = task.get("status") == "completed"
        completed_at = None
        if completed:
            completed_at = parse_timestamp(
                (task.get("completedDateTime") or {}).get("dateTime")
                or task.get("lastModifiedDateTime")
            )

        attachments = None
        if task.get("attachments"):
            attachments = [
                Attachment(name=a.get("name", ""), size=a.get("size"))
                for a in task["attachments"]
            ]

        return CanonicalTask(
            provider_task_id=remote.id,
            name=remote.title if remote.has_title else DEFAULT_TASK_NAME,
            description=description,
            due_date=parse_due_date((task.get("dueDateTime") or {}).get("dateTime")),
            completed=completed,
            completed_at=completed_at,
            attachments=attachments,
        )

    # ===== Write =====

    def _task_body(self, task: Task) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "title": task.name,
            "body": {"content": task.description or "", "contentType": "text"},
            "status": "completed" if task.completed else "notStarted",
            "dueDateTime": None,
        }
        if task.due_date:
            body["dueDateTime"] = {
                "dateTime": f"{task.due_date.isoformat()}T00:00:00",
                "timeZone": "UTC",
            }
        if task.completed and task.completed_at:
            body["completedDateTime"] = _graph_datetime(task.completed_at)
        return body

    async def create_remote(self, access_token: str, task: Task) -> str:
        list_id = await self._default_list_id(access_token)
        if not list_id:
            raise ProviderError(404, "No default Microsoft To Do list", provider=self.PROVIDER)

        body = self._task_body(task)
        # a new task has nothing to clear
        if body["dueDateTime"] is None:
            del body["dueDateTime"]
        response = await self._request(
            "POST", f"{self.api_base_url}/lists/{list_id}/tasks", access_token, "create task", json=body
        )
        provider_task_id = response.json()["id"]
        self._remember(access_token, provider_task_id, list_id)
        logger.info(f"Microsoft To Do task created: {provider_task_id}")
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
        logger.info(f"Microsoft To Do task updated: {provider_task_id}")

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
        logger.info(f"Microsoft To Do task deleted: {provider_task_id}")
