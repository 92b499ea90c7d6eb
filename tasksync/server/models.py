"""Pydantic request/response models for the tasksync API."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class ConnectResponse(BaseModel):
    authorization_url: str
    state: str


class SyncRequest(BaseModel):
    include_completed: Optional[bool] = None
    wait: bool = False


class DisconnectResponse(BaseModel):
    success: bool
    unlinked_tasks: int


class TaskUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    clear_due_date: bool = False
    recurrence: Optional[str] = None  # "none", "daily", "weekly", "monthly", "yearly"
    provider: Optional[str] = None  # where to create an unlinked task


class TaskCreateRequest(BaseModel):
    user_id: str
    name: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    recurrence: Optional[str] = None
    provider: Optional[str] = None


class TaskListResponse(BaseModel):
    tasks: List[dict]
