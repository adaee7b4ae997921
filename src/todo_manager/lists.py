"""
Task list repository.

Every operation loads the full document from the store while holding the
store lock, mutates it in memory and saves it back.
"""

import logging
import uuid
from typing import List, Optional

from .errors import DuplicateNameError, NotFoundError
from .integrity import cascade_delete_list
from .models import (
    StorageDocument, TaskList, TaskListUpdate, TaskStats, apply_list_update, utc_now
)
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


class ListRepository:
    """CRUD, existence checks and statistics for task lists."""

    def __init__(self, store: JsonFileStore):
        self._store = store

    @staticmethod
    def _check_unique_name(
        document: StorageDocument, name: str, exclude_id: Optional[str] = None
    ) -> None:
        wanted = name.lower()
        for task_list in document.task_lists:
            if task_list.id != exclude_id and task_list.name.lower() == wanted:
                raise DuplicateNameError(name)

    def list_all(self) -> List[TaskList]:
        """All task lists in creation order."""
        with self._store.lock:
            document = self._store.load()
        logger.debug(f"Retrieved {len(document.task_lists)} task lists")
        return list(document.task_lists)

    def get(self, list_id: str) -> Optional[TaskList]:
        """Task list by ID, or None."""
        with self._store.lock:
            document = self._store.load()
        return document.find_list(list_id)

    def exists(self, list_id: str) -> bool:
        return self.get(list_id) is not None

    def create(self, name: str) -> TaskList:
        """
        Create a task list.

        Args:
            name: Display name; surrounding whitespace is trimmed

        Returns:
            The persisted TaskList

        Raises:
            DuplicateNameError: A list with the same name (ignoring case) exists
        """
        clean_name = name.strip()
        with self._store.lock:
            document = self._store.load()
            self._check_unique_name(document, clean_name)

            now = utc_now()
            task_list = TaskList(
                id=str(uuid.uuid4()), name=clean_name, created_at=now, updated_at=now
            )
            document.task_lists.append(task_list)
            self._store.save(document)

        logger.info(f"Created task list {task_list.id} '{task_list.name}'")
        return task_list

    def update(self, list_id: str, changes: TaskListUpdate) -> TaskList:
        """
        Apply a partial update to a task list.

        Raises:
            NotFoundError: Unknown list ID
            DuplicateNameError: The new name collides with another list
        """
        with self._store.lock:
            document = self._store.load()
            index = next(
                (i for i, item in enumerate(document.task_lists) if item.id == list_id), None
            )
            if index is None:
                raise NotFoundError("Task list", list_id)

            if changes.name is not None:
                self._check_unique_name(document, changes.name.strip(), exclude_id=list_id)

            updated = apply_list_update(document.task_lists[index], changes, utc_now())
            document.task_lists[index] = updated
            self._store.save(document)

        logger.info(f"Updated task list {updated.id} '{updated.name}'")
        return updated

    def delete(self, list_id: str) -> bool:
        """
        Delete a list together with all of its tasks in one save.

        Returns:
            False when the list does not exist, True otherwise
        """
        with self._store.lock:
            document = self._store.load()
            removed = cascade_delete_list(document, list_id)
            if removed is None:
                logger.info(f"Task list {list_id} not found for deletion")
                return False
            self._store.save(document)

        task_list, tasks = removed
        logger.info(f"Deleted task list {list_id} '{task_list.name}' and {len(tasks)} tasks")
        return True

    def stats(self, list_id: str) -> Optional[TaskStats]:
        """Completion statistics for one list, or None when it does not exist."""
        with self._store.lock:
            document = self._store.load()
        if document.find_list(list_id) is None:
            return None
        return TaskStats.from_tasks(document.tasks_for_list(list_id))
