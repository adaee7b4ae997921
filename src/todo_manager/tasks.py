"""
Task repository.

Tasks always reference an existing list; the list check runs against the
same document snapshot the operation mutates.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from .errors import NotFoundError
from .models import (
    StorageDocument, Task, TaskStats, TaskUpdate, apply_task_update, clean_optional_text, utc_now
)
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


def newest_first(tasks: Iterable[Task]) -> List[Task]:
    """Stable sort by creation time, most recent first."""
    return sorted(tasks, key=lambda task: task.created_at, reverse=True)


class TaskRepository:
    """CRUD, search and statistics for tasks."""

    def __init__(self, store: JsonFileStore):
        self._store = store

    def _load(self) -> StorageDocument:
        with self._store.lock:
            return self._store.load()

    @staticmethod
    def _require_list(document: StorageDocument, list_id: str) -> None:
        if document.find_list(list_id) is None:
            raise NotFoundError("Task list", list_id)

    @staticmethod
    def _index_of(document: StorageDocument, task_id: str) -> int:
        for index, task in enumerate(document.tasks):
            if task.id == task_id:
                return index
        raise NotFoundError("Task", task_id)

    def list_by_list_id(self, list_id: str) -> List[Task]:
        """
        Tasks of one list, newest first.

        Raises:
            NotFoundError: Unknown list ID
        """
        document = self._load()
        self._require_list(document, list_id)
        return newest_first(document.tasks_for_list(list_id))

    def get(self, task_id: str) -> Optional[Task]:
        return self._load().find_task(task_id)

    def list_all(self) -> List[Task]:
        """Tasks across every list, newest first."""
        return newest_first(self._load().tasks)

    def create(self, list_id: str, title: str, time: Optional[str] = None) -> Task:
        """
        Create an incomplete task inside a list.

        Args:
            list_id: Owning list ID
            title: Task title; trimmed
            time: Optional free-text time; trimmed, blank becomes None

        Raises:
            NotFoundError: Unknown list ID
        """
        with self._store.lock:
            document = self._store.load()
            self._require_list(document, list_id)

            now = utc_now()
            task = Task(
                id=str(uuid.uuid4()),
                title=title.strip(),
                time=clean_optional_text(time),
                completed=False,
                list_id=list_id,
                created_at=now,
                updated_at=now,
            )
            document.tasks.append(task)
            self._store.save(document)

        logger.info(f"Created task {task.id} '{task.title}' in list {list_id}")
        return task

    def update(self, task_id: str, changes: TaskUpdate) -> Task:
        """
        Apply a partial update; absent fields keep their current value.

        Raises:
            NotFoundError: Unknown task ID
        """
        with self._store.lock:
            document = self._store.load()
            index = self._index_of(document, task_id)
            updated = apply_task_update(document.tasks[index], changes, utc_now())
            document.tasks[index] = updated
            self._store.save(document)

        logger.info(f"Updated task {updated.id} (completed={updated.completed})")
        return updated

    def toggle_completion(self, task_id: str) -> Task:
        """
        Flip a task between completed and pending.

        Raises:
            NotFoundError: Unknown task ID
        """
        with self._store.lock:
            document = self._store.load()
            index = self._index_of(document, task_id)
            current = document.tasks[index]
            updated = current.model_copy(
                update={"completed": not current.completed, "updated_at": utc_now()}
            )
            document.tasks[index] = updated
            self._store.save(document)

        logger.info(f"Toggled task {updated.id} to completed={updated.completed}")
        return updated

    def delete(self, task_id: str) -> bool:
        """Delete a task; False when it does not exist."""
        with self._store.lock:
            document = self._store.load()
            try:
                index = self._index_of(document, task_id)
            except NotFoundError:
                logger.info(f"Task {task_id} not found for deletion")
                return False
            deleted = document.tasks.pop(index)
            self._store.save(document)

        logger.info(f"Deleted task {deleted.id} '{deleted.title}' from list {deleted.list_id}")
        return True

    def search(self, query: str, list_id: Optional[str] = None) -> List[Task]:
        """
        Case-insensitive title search.

        Exact title matches come first, then partial matches; both groups are
        ordered newest first.

        Raises:
            NotFoundError: list_id given but unknown
        """
        document = self._load()
        candidates = document.tasks
        if list_id is not None:
            self._require_list(document, list_id)
            candidates = document.tasks_for_list(list_id)

        needle = query.strip().lower()
        matches = newest_first(task for task in candidates if needle in task.title.lower())
        # list.sort is stable, so newest-first order survives within each group
        matches.sort(key=lambda task: task.title.lower() != needle)

        logger.debug(f"Search '{query}' in {list_id or 'all lists'}: {len(matches)} matches")
        return matches

    def stats(self, list_id: Optional[str] = None) -> TaskStats:
        """
        Completion statistics for one list or for every task.

        Raises:
            NotFoundError: list_id given but unknown
        """
        document = self._load()
        if list_id is None:
            return TaskStats.from_tasks(document.tasks)
        self._require_list(document, list_id)
        return TaskStats.from_tasks(document.tasks_for_list(list_id))
