"""
FastAPI Backend for the To-Do List Manager

Builds the REST application around one JsonFileStore and its repositories,
maps core exceptions to HTTP responses with a uniform JSON envelope, and
serves the browser front end from the bundled static directory.
"""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Any, Dict, List

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .dependencies import get_monitor, get_store
from .errors import DuplicateNameError, NotFoundError, StorageError
from .integrity import purge_orphaned_tasks
from .lists import ListRepository
from .models import (
    HealthResponse, create_error_response, create_success_response, to_payload, utc_timestamp
)
from .monitoring import BackgroundTasks, PerformanceMonitor
from .routers import lists as lists_router
from .routers import tasks as tasks_router
from .storage import JsonFileStore
from .tasks import TaskRepository

logger = logging.getLogger(__name__)

SERVICE_NAME = "To-Do List API"
API_VERSION = "1.0.0"
STATIC_DIR = Path(__file__).parent / "static"

ENDPOINT_DOCS = {
    "lists": {
        "GET /api/lists": "Get all task lists",
        "POST /api/lists": "Create a new task list",
        "GET /api/lists/:id": "Get a specific task list",
        "PUT /api/lists/:id": "Update a task list",
        "DELETE /api/lists/:id": "Delete a task list",
        "GET /api/lists/:id/stats": "Get task list statistics",
        "GET /api/lists/:listId/tasks": "Get tasks for a specific list",
        "POST /api/lists/:listId/tasks": "Create a task in a specific list",
    },
    "tasks": {
        "GET /api/tasks": "Get all tasks",
        "GET /api/tasks/:id": "Get a specific task",
        "PUT /api/tasks/:id": "Update a task",
        "DELETE /api/tasks/:id": "Delete a task",
        "PATCH /api/tasks/:id/toggle": "Toggle task completion",
        "GET /api/tasks/search?q=query&listId=id": "Search tasks",
        "GET /api/tasks/stats?listId=id": "Get task statistics",
    },
}


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "Invalid value")).replace("Value error, ", "")
        details.append({"field": ".".join(location), "message": message})
    return details


def _register_exception_handlers(app: FastAPI) -> None:
    """Translate core and framework errors into the JSON error envelope."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404, content=create_error_response(str(exc), 404, request.url.path)
        )

    @app.exception_handler(DuplicateNameError)
    async def duplicate_name_handler(request: Request, exc: DuplicateNameError):
        return JSONResponse(
            status_code=409, content=create_error_response(str(exc), 409, request.url.path)
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500, content=create_error_response(str(exc), 500, request.url.path)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = _validation_details(exc)
        message = details[0]["message"] if details else "Validation Error"
        if details and details[0]["field"]:
            message = f"{details[0]['field']}: {message}"
        return JSONResponse(
            status_code=422,
            content=create_error_response(message, 422, request.url.path, details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail)
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(message, exc.status_code, request.url.path),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=create_error_response("Internal Server Error", 500, request.url.path),
        )


def create_app(settings: Optional[Settings] = None, store: Optional[JsonFileStore] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Server configuration; read from the environment when omitted
        store: Pre-built store (tests); built from ``settings.data_dir`` otherwise

    Returns:
        Configured FastAPI app with store, repositories and monitor on ``app.state``
    """
    settings = settings or Settings.from_env()
    store = store or JsonFileStore(
        settings.data_dir, strict_load=settings.strict_load, json_indent=settings.json_indent
    )
    background_tasks = BackgroundTasks()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Verify storage on startup and run maintenance workers until shutdown."""
        logger.info("Initializing storage system...")
        if not store.is_accessible():
            raise RuntimeError(f"Storage system is not accessible: {store.data_dir}")
        # Creates the document on first run; raises in strict mode if unreadable
        document = store.load()
        logger.info(
            f"Storage ready at {store.primary_path}: "
            f"{len(document.task_lists)} lists, {len(document.tasks)} tasks"
        )

        await background_tasks.start_background_tasks(
            store, app.state.monitor, settings.auto_backup_interval_seconds
        )

        yield

        try:
            await background_tasks.stop_background_tasks()
        except Exception as e:
            logger.error(f"Error stopping background tasks: {e}")
        logger.info("To-Do List API shut down")

    app = FastAPI(
        title=SERVICE_NAME,
        description="REST API for managing task lists and tasks stored in a JSON file",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.lists = ListRepository(store)
    app.state.tasks = TaskRepository(store)
    app.state.monitor = PerformanceMonitor()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=r"^file://.*",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
        max_age=86400,
    )

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        """Reject oversized bodies, then log and time every request."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.max_request_bytes:
            return JSONResponse(
                status_code=413,
                content=create_error_response("Request body too large", 413, request.url.path),
            )

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        app.state.monitor.record_request(
            request.method, request.url.path, response.status_code, duration_ms
        )
        logger.info(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
        return response

    _register_exception_handlers(app)

    app.include_router(lists_router.router)
    app.include_router(tasks_router.router)

    @app.get("/api/health")
    async def health_check(
        store: JsonFileStore = Depends(get_store),
        monitor: PerformanceMonitor = Depends(get_monitor),
    ):
        """Application health including a shallow storage probe."""
        accessible = store.is_accessible()
        health = HealthResponse(
            status="healthy" if accessible else "degraded",
            service=SERVICE_NAME,
            version=API_VERSION,
            storage_accessible=accessible,
            uptime_seconds=round(monitor.get_uptime_seconds(), 3),
            memory_usage_mb=round(monitor.get_memory_usage_mb(), 2),
            timestamp=utc_timestamp(),
        )
        return create_success_response(to_payload(health), "API is running successfully")

    @app.get("/api/metrics")
    async def get_metrics(monitor: PerformanceMonitor = Depends(get_monitor)):
        return create_success_response(monitor.snapshot(), "Metrics retrieved successfully")

    @app.get("/api")
    async def api_info():
        return create_success_response(
            {
                "name": SERVICE_NAME,
                "version": API_VERSION,
                "description": "A full-stack to-do list application with multiple task lists support",
                "endpoints": {"lists": "/api/lists", "tasks": "/api/tasks", "health": "/api/health"},
                "documentation": ENDPOINT_DOCS,
            },
            "Welcome to the To-Do List API",
        )

    @app.post("/api/cleanup/orphaned-tasks")
    async def cleanup_orphaned_tasks(store: JsonFileStore = Depends(get_store)):
        """Remove tasks whose list no longer exists (hand-edited documents)."""
        removed = purge_orphaned_tasks(store)
        return create_success_response(
            {"orphanedTasksRemoved": removed}, f"Removed {removed} orphaned task(s)"
        )

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/")
    async def dashboard():
        """Serve the browser front end."""
        index_file = STATIC_DIR / "index.html"
        if index_file.exists():
            return FileResponse(index_file)
        return {"message": "Front end not available", "detail": "Static files not found"}

    return app
