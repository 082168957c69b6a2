"""Task router: creation with series expansion, listing, completion, deletion."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from family_tasks.config import Settings
from family_tasks.errors import ValidationError
from family_tasks.routers.deps import get_recurring_service, get_settings_dep, get_task_service
from family_tasks.schemas.task import TaskCreate, TaskCreated, TaskList, TaskResponse, TaskToggleComplete
from family_tasks.services.recurring_task_service import RecurringTaskService
from family_tasks.services.task_service import TaskService
from family_tasks.utils.timezone import parse_timestamp

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def _parse(field: str, value, settings: Settings):
    try:
        return parse_timestamp(value, settings.time_zone)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO 8601 timestamp, got: {value}")


@router.post("", response_model=TaskCreated, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    service: TaskService = Depends(get_task_service),
    recurring: RecurringTaskService = Depends(get_recurring_service),
    settings: Settings = Depends(get_settings_dep),
):
    """Create a task; a recurring definition is expanded into its occurrences right away."""
    task = service.create_task(
        title=task_data.title,
        description=task_data.description,
        assigned_to=task_data.assigned_to,
        priority=task_data.priority or "medium",
        due_date=_parse("due_date", task_data.due_date, settings),
        reminder_time=_parse("reminder_time", task_data.reminder_time, settings),
        recurrence_pattern=task_data.recurrence_pattern,
        recurrence_end_date=_parse("recurrence_end_date", task_data.recurrence_end_date, settings),
        is_recurring=task_data.is_recurring,
    )

    occurrences = []
    if task.is_recurring:
        occurrences = recurring.expand_recurring_series(task)

    return TaskCreated(
        task=TaskResponse.model_validate(task),
        occurrences_created=len(occurrences),
    )


@router.get("", response_model=TaskList)
async def list_tasks(
    include_completed: bool = Query(True, description="Include completed tasks"),
    service: TaskService = Depends(get_task_service),
):
    tasks = service.list_tasks(include_completed=include_completed)
    return {
        "tasks": tasks,
        "count": len(tasks)
    }


@router.patch("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: int,
    body: Optional[TaskToggleComplete] = None,
    service: TaskService = Depends(get_task_service),
):
    """Mark a task complete (or reopen it with ``{"completed": false}``)."""
    completed = body.completed if body is not None else True
    return service.set_completed(task_id, completed)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, service: TaskService = Depends(get_task_service)):
    if not service.delete_task(task_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
