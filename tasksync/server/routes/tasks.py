"""Local task routes. Edits are saved locally first, then pushed upstream."""

from fastapi import APIRouter, Depends, HTTPException

from ...errors import InvalidTransitionError, TaskNotFoundError
from ...models import Recurrence, Task
from ..app import get_service, verify_api_key
from ..models import TaskCreateRequest, TaskListResponse, TaskUpdateRequest

router = APIRouter(prefix="/api/tasks")


def _recurrence(value) -> Recurrence:
    try:
        return Recurrence.parse(value)
    except ValueError:
        raise HTTPException(400, f"Invalid recurrence: {value}")


@router.get("", response_model=TaskListResponse, dependencies=[Depends(verify_api_key)])
async def list_tasks(user_id: str):
    service = get_service()
    await service.initialize()
    tasks = await service.task_store.list_for_user(user_id)
    return {"tasks": [t.to_dict() for t in tasks]}


@router.post("", dependencies=[Depends(verify_api_key)])
async def create_task(req: TaskCreateRequest):
    """Create a local task and push it to the chosen (or first connected) provider."""
    task = Task(
        user_id=req.user_id,
        name=req.name,
        description=req.description,
        due_date=req.due_date,
        recurrence=_recurrence(req.recurrence),
    )
    result = await get_service().save_local_edit(task, provider=req.provider)
    return result.to_dict()


@router.put("/{task_id}", dependencies=[Depends(verify_api_key)])
async def update_task(task_id: str, req: TaskUpdateRequest):
    service = get_service()
    await service.initialize()
    task = await service.task_store.get(task_id)
    if not task:
        raise HTTPException(404, "Task not found")

    if req.name is not None:
        task.name = req.name
    if req.description is not None:
        task.description = req.description
    if req.due_date is not None:
        task.due_date = req.due_date
    elif req.clear_due_date:
        task.due_date = None
    if req.recurrence is not None:
        task.recurrence = _recurrence(req.recurrence)

    result = await service.save_local_edit(task, provider=req.provider)
    return result.to_dict()


@router.post("/{task_id}/complete", dependencies=[Depends(verify_api_key)])
async def complete_task(task_id: str):
    """Complete a task. Recurring tasks roll forward and keep a history entry."""
    try:
        result = await get_service().complete_task(task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    except InvalidTransitionError as e:
        raise HTTPException(409, e.message)
    return result.to_dict()


@router.post("/{task_id}/uncomplete", dependencies=[Depends(verify_api_key)])
async def uncomplete_task(task_id: str):
    try:
        result = await get_service().uncomplete_task(task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    except InvalidTransitionError as e:
        raise HTTPException(409, e.message)
    return result.to_dict()


@router.delete("/{task_id}", dependencies=[Depends(verify_api_key)])
async def delete_task(task_id: str):
    try:
        push = await get_service().delete_local_task(task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    return {"deleted": True, "push": push.to_dict()}
