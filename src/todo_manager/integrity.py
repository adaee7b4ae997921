"""
Referential integrity between task lists and tasks.

A task must always belong to an existing list. Deleting a list removes its
tasks in the same in-memory mutation so a single save persists both.
"""

import logging
from typing import List, Optional, Tuple

from .models import StorageDocument, Task, TaskList
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


def cascade_delete_list(
    document: StorageDocument, list_id: str
) -> Optional[Tuple[TaskList, List[Task]]]:
    """
    Remove a list and every task it owns from ``document``.

    The caller is responsible for saving the document exactly once afterwards.

    Args:
        document: Loaded document to mutate in place
        list_id: ID of the list to remove

    Returns:
        (removed list, removed tasks), or None when the list does not exist
    """
    task_list = document.find_list(list_id)
    if task_list is None:
        return None

    removed_tasks = document.tasks_for_list(list_id)
    document.task_lists = [item for item in document.task_lists if item.id != list_id]
    document.tasks = [task for task in document.tasks if task.list_id != list_id]
    return task_list, removed_tasks


def find_orphaned_tasks(document: StorageDocument) -> List[Task]:
    """Tasks whose listId matches no list in the document."""
    list_ids = {task_list.id for task_list in document.task_lists}
    return [task for task in document.tasks if task.list_id not in list_ids]


def purge_orphaned_tasks(store: JsonFileStore) -> int:
    """
    Delete orphaned tasks left behind by hand-edited documents.

    Saves only when something was removed.

    Returns:
        Number of tasks removed
    """
    with store.lock:
        document = store.load()
        orphans = find_orphaned_tasks(document)
        if not orphans:
            return 0

        orphan_ids = {task.id for task in orphans}
        document.tasks = [task for task in document.tasks if task.id not in orphan_ids]
        store.save(document)

    logger.warning(f"Removed {len(orphans)} orphaned tasks")
    return len(orphans)
