"""
Shared fixtures for the to-do manager test suite.

Every test gets its own temporary data directory, so stores, repositories
and API clients never share a storage.json.
"""

import pytest
from fastapi.testclient import TestClient

from todo_manager.api import create_app
from todo_manager.config import Settings
from todo_manager.lists import ListRepository
from todo_manager.storage import JsonFileStore
from todo_manager.tasks import TaskRepository


@pytest.fixture
def data_dir(tmp_path):
    """Not-yet-created data directory inside the pytest temp dir."""
    return tmp_path / "data"


@pytest.fixture
def store(data_dir):
    return JsonFileStore(data_dir)


@pytest.fixture
def lists(store):
    return ListRepository(store)


@pytest.fixture
def tasks(store):
    return TaskRepository(store)


@pytest.fixture
def settings(data_dir):
    """Settings built explicitly so the host environment cannot leak in."""
    return Settings(data_dir=data_dir)


@pytest.fixture
def client(settings, store):
    """TestClient running the app lifespan against the temporary store."""
    with TestClient(create_app(settings, store)) as test_client:
        yield test_client


@pytest.fixture
def groceries(lists, tasks):
    """A 'Groceries' list holding one task, created through the repositories."""
    task_list = lists.create("Groceries")
    task = tasks.create(task_list.id, "Milk", "18:00")
    return task_list, task
