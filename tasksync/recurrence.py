"""
Recurrence rollover.

Completing a recurring task never leaves it completed: a completed history
snapshot is stored and the live task moves to its next due date. Snapshots
are terminal and carry no provider link.
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from .errors import InvalidTransitionError
from .models import Recurrence, Task, utcnow
from .tasks.store import BaseTaskStore

logger = logging.getLogger(__name__)

_STEPS = {
    Recurrence.DAILY: relativedelta(days=1),
    Recurrence.WEEKLY: relativedelta(weeks=1),
    Recurrence.MONTHLY: relativedelta(months=1),
    Recurrence.YEARLY: relativedelta(years=1),
}


def next_due_date(due: Optional[date], recurrence: Optional[Recurrence]) -> Optional[date]:
    """Advance due by one recurrence step.

    Month and year steps clamp to the last day of the month
    (2024-01-31 monthly -> 2024-02-29).
    """
    if due is None or recurrence is None:
        return None
    step = _STEPS.get(Recurrence.parse(recurrence))
    if step is None:
        return None
    return due + step


@dataclass
class RolloverResult:
    task: Task
    snapshot: Optional[Task] = None


class RecurrenceRoller:
    """Applies completion rules and persists through the task store."""

    def __init__(self, task_store: BaseTaskStore):
        self.task_store = task_store

    async def complete(self, task: Task, now: Optional[datetime] = None) -> RolloverResult:
        if task.is_history:
            raise InvalidTransitionError(
                f"Task {task.id} is a completed history entry", user_id=task.user_id
            )
        now = now or utcnow()

        if not task.is_recurring:
            task.completed = True
            task.completed_at = now
            saved = await self.task_store.save(task)
            return RolloverResult(task=saved)

        snapshot = copy.deepcopy(task)
        snapshot.id = str(uuid.uuid4())
        snapshot.completed = True
        snapshot.completed_at = now
        snapshot.parent_task_id = task.id
        snapshot.microsoft_todo_id = None
        snapshot.google_task_id = None
        snapshot.created_at = now
        snapshot.updated_at = now
        snapshot = await self.task_store.insert(snapshot)

        task.due_date = next_due_date(task.due_date, task.recurrence)
        task.completed = False
        task.completed_at = None
        saved = await self.task_store.save(task)

        logger.info(
            f"Rolled over {task.recurrence.value} task {task.id}: "
            f"history {snapshot.id}, next due {saved.due_date}"
        )
        return RolloverResult(task=saved, snapshot=snapshot)

    async def uncomplete(self, task: Task) -> Task:
        if task.is_history:
            raise InvalidTransitionError(
                f"Task {task.id} is a completed history entry", user_id=task.user_id
            )
        if task.is_recurring:
            raise InvalidTransitionError(
                f"Recurring task {task.id} cannot be uncompleted", user_id=task.user_id
            )
        task.completed = False
        task.completed_at = None
        return await self.task_store.save(task)
