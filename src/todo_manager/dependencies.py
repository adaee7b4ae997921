"""
FastAPI dependencies resolving the per-application store and repositories.

Instances are created by ``create_app`` and kept on ``app.state``; routes
never reach for module-level globals.
"""

import uuid

from fastapi import HTTPException, Request

from .lists import ListRepository
from .monitoring import PerformanceMonitor
from .storage import JsonFileStore
from .tasks import TaskRepository


def get_store(request: Request) -> JsonFileStore:
    return request.app.state.store


def get_list_repository(request: Request) -> ListRepository:
    return request.app.state.lists


def get_task_repository(request: Request) -> TaskRepository:
    return request.app.state.tasks


def get_monitor(request: Request) -> PerformanceMonitor:
    return request.app.state.monitor


def validate_uuid(value: str, field_name: str) -> str:
    """
    Reject identifiers that are not UUIDs before touching storage.

    Raises:
        HTTPException: 400 when ``value`` is not a UUID
    """
    try:
        uuid.UUID(value)
    except (ValueError, TypeError):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a valid UUID")
    return value
