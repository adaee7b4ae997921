"""
Pydantic models for the to-do list document, its entities and the API.

Entities serialize with camelCase aliases (``listId``, ``createdAt``) so the
JSON document and the REST payloads share one wire shape, while Python code
uses snake_case attributes.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel


MAX_TEXT_LENGTH = 255
STORAGE_VERSION = "1.0.0"
SUPPORTED_MAJOR_VERSION = "1"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with a ``Z`` suffix."""
    return utc_now().isoformat().replace("+00:00", "Z")


def _as_utc(value: datetime) -> datetime:
    # Hand-edited documents may carry naive timestamps; treat them as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_text(value: Optional[str], field_name: str) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


class CamelModel(BaseModel):
    """Base model exchanging camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Persisted entities


class TaskList(CamelModel):
    """A named collection of tasks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    id: str
    name: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class Task(CamelModel):
    """A single to-do item owned by exactly one task list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    id: str
    title: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    time: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    completed: bool = False
    list_id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class StorageMetadata(CamelModel):
    """Document-level bookkeeping."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    version: str = STORAGE_VERSION
    last_updated: datetime = Field(default_factory=utc_now)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Only documents written by a 1.x store are understood."""
        if v.split(".", 1)[0] != SUPPORTED_MAJOR_VERSION:
            raise ValueError(f"Unsupported storage version: {v}")
        return v

    @field_validator("last_updated")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class StorageDocument(CamelModel):
    """The persisted root holding every task list and task."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    task_lists: List[TaskList] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    metadata: StorageMetadata = Field(default_factory=StorageMetadata)

    @classmethod
    def empty(cls) -> "StorageDocument":
        """Fresh document with no lists and no tasks."""
        return cls(metadata=StorageMetadata(version=STORAGE_VERSION, last_updated=utc_now()))

    def find_list(self, list_id: str) -> Optional[TaskList]:
        return next((task_list for task_list in self.task_lists if task_list.id == list_id), None)

    def find_task(self, task_id: str) -> Optional[Task]:
        return next((task for task in self.tasks if task.id == task_id), None)

    def tasks_for_list(self, list_id: str) -> List[Task]:
        return [task for task in self.tasks if task.list_id == list_id]


# Create and partial-update structs


class TaskListCreate(CamelModel):
    """Request model for creating a task list."""

    name: str = Field(max_length=MAX_TEXT_LENGTH, description="Display name of the list")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _require_text(v, "name")


class TaskListUpdate(CamelModel):
    """
    Partial update for a task list.

    A present ``name`` replaces the current one; an absent or null ``name``
    leaves it unchanged.
    """

    name: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _require_text(v, "name")


class TaskCreate(CamelModel):
    """Request model for creating a task inside a list."""

    title: str = Field(max_length=MAX_TEXT_LENGTH)
    time: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require_text(v, "title")

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return _require_text(v, "time")


class TaskUpdate(CamelModel):
    """
    Partial update for a task.

    Merge precedence: a present field overrides, an absent field preserves.
    ``time`` may be explicitly set to null to clear it; a null ``title`` or
    ``completed`` counts as absent.
    """

    title: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    time: Optional[str] = Field(None, max_length=MAX_TEXT_LENGTH)
    completed: Optional[StrictBool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require_text(v, "title")

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return _require_text(v, "time")

    def has_changes(self) -> bool:
        """True when at least one field carries a value to apply."""
        return (
            self.title is not None
            or self.completed is not None
            or "time" in self.model_fields_set
        )


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    """Trim optional free text, collapsing blank values to None."""
    if value is None:
        return None
    return value.strip() or None


def apply_list_update(task_list: TaskList, changes: TaskListUpdate, now: datetime) -> TaskList:
    """Return a copy of ``task_list`` with ``changes`` merged in and ``updated_at`` bumped."""
    update: Dict[str, Any] = {"updated_at": now}
    if changes.name is not None:
        update["name"] = changes.name.strip()
    return task_list.model_copy(update=update)


def apply_task_update(task: Task, changes: TaskUpdate, now: datetime) -> Task:
    """Return a copy of ``task`` with ``changes`` merged in and ``updated_at`` bumped."""
    update: Dict[str, Any] = {"updated_at": now}
    if changes.title is not None:
        update["title"] = changes.title.strip()
    if "time" in changes.model_fields_set:
        update["time"] = clean_optional_text(changes.time)
    if changes.completed is not None:
        update["completed"] = changes.completed
    return task.model_copy(update=update)


# Aggregates and API responses


class TaskStats(CamelModel):
    """Completion statistics over a set of tasks."""

    total_tasks: int = Field(ge=0)
    completed_tasks: int = Field(ge=0)
    pending_tasks: int = Field(ge=0)
    completion_rate: float = Field(ge=0.0, le=100.0, description="Percentage, 2 decimals")

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskStats":
        tasks = list(tasks)
        total = len(tasks)
        completed = sum(1 for task in tasks if task.completed)
        rate = round(completed / total * 100, 2) if total > 0 else 0.0
        return cls(
            total_tasks=total,
            completed_tasks=completed,
            pending_tasks=total - completed,
            completion_rate=rate,
        )


class HealthResponse(CamelModel):
    """Payload of the application health endpoint."""

    status: str
    service: str
    version: str
    storage_accessible: bool
    uptime_seconds: float
    memory_usage_mb: float
    timestamp: str


ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_SERVER_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def to_payload(model: BaseModel) -> Dict[str, Any]:
    """JSON-ready dict using the camelCase wire names."""
    return model.model_dump(mode="json", by_alias=True)


def create_error_response(
    message: str, status_code: int, path: str, details: Optional[Any] = None
) -> Dict[str, Any]:
    """Create a standardized error response dictionary."""
    error: Dict[str, Any] = {
        "message": message,
        "code": ERROR_CODES.get(status_code, "UNKNOWN_ERROR"),
    }
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error, "timestamp": utc_timestamp(), "path": path}


def create_success_response(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
    """Create a standardized success response dictionary."""
    response: Dict[str, Any] = {"success": True, "data": data}
    if message:
        response["message"] = message
    response["timestamp"] = utc_timestamp()
    return response
