"""
Task list endpoints, including the list-scoped task routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..dependencies import get_list_repository, get_task_repository, validate_uuid
from ..errors import NotFoundError
from ..lists import ListRepository
from ..models import (
    TaskCreate, TaskListCreate, TaskListUpdate, create_success_response, to_payload, utc_timestamp
)
from ..tasks import TaskRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/lists", tags=["Task Lists"])


# Declared before /{list_id} so "health" is not taken for an ID
@router.get("/health")
async def lists_health(lists: ListRepository = Depends(get_list_repository)):
    """Health check for the task list service."""
    try:
        count = len(lists.list_all())
    except Exception as e:
        logger.error(f"Task list health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": {"message": "Task list service is unhealthy", "code": "SERVICE_UNHEALTHY"},
                "timestamp": utc_timestamp(),
            },
        )

    return create_success_response(
        {"status": "healthy", "taskListsCount": count, "timestamp": utc_timestamp()},
        "Task list service is healthy",
    )


@router.get("")
async def get_all_task_lists(lists: ListRepository = Depends(get_list_repository)):
    task_lists = lists.list_all()
    logger.info(f"Returned {len(task_lists)} task lists")
    return create_success_response(
        [to_payload(task_list) for task_list in task_lists], "Task lists retrieved successfully"
    )


@router.post("", status_code=201)
async def create_task_list(
    body: TaskListCreate,
    lists: ListRepository = Depends(get_list_repository),
):
    """Create a task list; 409 when the name is taken (ignoring case)."""
    task_list = lists.create(body.name)
    return JSONResponse(
        status_code=201,
        content=create_success_response(to_payload(task_list), "Task list created successfully"),
    )


@router.get("/{list_id}")
async def get_task_list(list_id: str, lists: ListRepository = Depends(get_list_repository)):
    validate_uuid(list_id, "id")
    task_list = lists.get(list_id)
    if task_list is None:
        raise NotFoundError("Task list", list_id)
    return create_success_response(to_payload(task_list), "Task list retrieved successfully")


@router.put("/{list_id}")
async def update_task_list(
    list_id: str,
    body: TaskListUpdate,
    lists: ListRepository = Depends(get_list_repository),
):
    """Rename a task list."""
    validate_uuid(list_id, "id")
    if body.name is None:
        raise HTTPException(status_code=422, detail="name field must be provided for update")

    task_list = lists.update(list_id, body)
    return create_success_response(to_payload(task_list), "Task list updated successfully")


@router.delete("/{list_id}")
async def delete_task_list(list_id: str, lists: ListRepository = Depends(get_list_repository)):
    """Delete a task list and every task it owns."""
    validate_uuid(list_id, "id")
    if not lists.delete(list_id):
        raise NotFoundError("Task list", list_id)
    return create_success_response(
        {"deleted": True}, "Task list and all associated tasks deleted successfully"
    )


@router.get("/{list_id}/stats")
async def get_task_list_stats(list_id: str, lists: ListRepository = Depends(get_list_repository)):
    validate_uuid(list_id, "id")
    stats = lists.stats(list_id)
    if stats is None:
        raise NotFoundError("Task list", list_id)
    return create_success_response(to_payload(stats), "Task list statistics retrieved successfully")


@router.get("/{list_id}/tasks")
async def get_tasks_for_list(list_id: str, tasks: TaskRepository = Depends(get_task_repository)):
    """Tasks of one list, newest first."""
    validate_uuid(list_id, "listId")
    list_tasks = tasks.list_by_list_id(list_id)
    return create_success_response(
        [to_payload(task) for task in list_tasks], "Tasks retrieved successfully"
    )


@router.post("/{list_id}/tasks", status_code=201)
async def create_task(
    list_id: str,
    body: TaskCreate,
    tasks: TaskRepository = Depends(get_task_repository),
):
    validate_uuid(list_id, "listId")
    task = tasks.create(list_id, body.title, body.time)
    return JSONResponse(
        status_code=201,
        content=create_success_response(to_payload(task), "Task created successfully"),
    )
