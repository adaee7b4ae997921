"""
Task endpoints that address tasks directly by ID or across lists.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from ..dependencies import get_task_repository, validate_uuid
from ..errors import NotFoundError
from ..models import TaskUpdate, create_success_response, to_payload, utc_timestamp
from ..tasks import TaskRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


# Fixed paths are declared before /{task_id}


@router.get("/health")
async def tasks_health(tasks: TaskRepository = Depends(get_task_repository)):
    """Health check for the task service."""
    try:
        count = len(tasks.list_all())
    except Exception as e:
        logger.error(f"Task health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "error": {"message": "Task service is unhealthy", "code": "SERVICE_UNHEALTHY"},
                "timestamp": utc_timestamp(),
            },
        )

    return create_success_response(
        {"status": "healthy", "tasksCount": count, "timestamp": utc_timestamp()},
        "Task service is healthy",
    )


@router.get("/search")
async def search_tasks(
    q: Optional[str] = Query(None, description="Case-insensitive title fragment"),
    list_id: Optional[str] = Query(None, alias="listId"),
    tasks: TaskRepository = Depends(get_task_repository),
):
    """Search task titles, exact matches first."""
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Search query is required and cannot be empty")
    if list_id:
        validate_uuid(list_id, "listId")

    matches = tasks.search(q, list_id or None)
    return create_success_response(
        [to_payload(task) for task in matches], f'Found {len(matches)} task(s) matching "{q}"'
    )


@router.get("/stats")
async def get_task_stats(
    list_id: Optional[str] = Query(None, alias="listId"),
    tasks: TaskRepository = Depends(get_task_repository),
):
    if list_id:
        validate_uuid(list_id, "listId")

    stats = tasks.stats(list_id or None)
    message = (
        "Task list statistics retrieved successfully"
        if list_id
        else "Overall task statistics retrieved successfully"
    )
    return create_success_response(to_payload(stats), message)


@router.get("")
async def get_all_tasks(tasks: TaskRepository = Depends(get_task_repository)):
    all_tasks = tasks.list_all()
    return create_success_response(
        [to_payload(task) for task in all_tasks], "All tasks retrieved successfully"
    )


@router.get("/{task_id}")
async def get_task(task_id: str, tasks: TaskRepository = Depends(get_task_repository)):
    validate_uuid(task_id, "id")
    task = tasks.get(task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return create_success_response(to_payload(task), "Task retrieved successfully")


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdate,
    tasks: TaskRepository = Depends(get_task_repository),
):
    """Partially update a task; omitted fields keep their values."""
    validate_uuid(task_id, "id")
    if not body.has_changes():
        raise HTTPException(
            status_code=422,
            detail="At least one field (title, time, or completed) must be provided for update",
        )

    task = tasks.update(task_id, body)
    return create_success_response(to_payload(task), "Task updated successfully")


@router.delete("/{task_id}")
async def delete_task(task_id: str, tasks: TaskRepository = Depends(get_task_repository)):
    validate_uuid(task_id, "id")
    if not tasks.delete(task_id):
        raise NotFoundError("Task", task_id)
    return create_success_response({"deleted": True}, "Task deleted successfully")


@router.patch("/{task_id}/toggle")
async def toggle_task_completion(task_id: str, tasks: TaskRepository = Depends(get_task_repository)):
    validate_uuid(task_id, "id")
    task = tasks.toggle_completion(task_id)
    state = "completed" if task.completed else "pending"
    return create_success_response(to_payload(task), f"Task marked as {state}")
