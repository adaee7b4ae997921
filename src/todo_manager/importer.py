"""
YAML Task List Importer

Seeds task lists and their tasks from a YAML file. Lists are matched by name
ignoring case, so re-importing a file reuses existing lists instead of
failing on the unique-name rule.

Expected layout::

    lists:
      - name: Groceries
        tasks:
          - title: Milk
            time: "18:00"
          - title: Bread
            completed: true
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

import yaml

from .errors import DuplicateNameError, NotFoundError
from .lists import ListRepository
from .models import TaskList, TaskUpdate
from .tasks import TaskRepository

logger = logging.getLogger(__name__)


def validate_import_yaml(yaml_file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and sanity-check an import file.

    Args:
        yaml_file_path: Path to the YAML file

    Returns:
        Parsed YAML mapping

    Raises:
        FileNotFoundError: File does not exist
        ValueError: Invalid YAML, or the root is not a mapping
    """
    path = Path(yaml_file_path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Import file must contain a YAML dictionary at root level")
    return data


def _find_list_by_name(task_lists: List[TaskList], name: str) -> Optional[TaskList]:
    wanted = name.strip().lower()
    return next((item for item in task_lists if item.name.lower() == wanted), None)


def _import_task(tasks: TaskRepository, list_id: str, task_data: Any) -> None:
    if not isinstance(task_data, dict):
        raise ValueError("Task data must be a dictionary")
    title = task_data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValueError("Task must have a non-empty 'title' field")

    time = task_data.get("time")
    # YAML reads unquoted 18:00 as the base-60 integer 1080
    if time is not None and not isinstance(time, str):
        raise ValueError("Task 'time' must be a string; quote values such as \"18:00\"")
    task = tasks.create(list_id, title, time)
    if task_data.get("completed") is True:
        tasks.update(task.id, TaskUpdate(completed=True))


def import_lists(
    lists: ListRepository, tasks: TaskRepository, data: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Import task lists and tasks from parsed YAML data.

    Individual list or task failures are recorded in ``errors`` and do not
    stop the import; storage failures propagate.

    Args:
        lists: Repository used to find or create lists
        tasks: Repository used to create tasks
        data: Parsed YAML mapping with a ``lists`` sequence

    Returns:
        Dict with ``lists_created``, ``lists_reused``, ``tasks_created`` and ``errors``

    Raises:
        ValueError: ``lists`` is missing or not a list
    """
    stats: Dict[str, Any] = {
        "lists_created": 0,
        "lists_reused": 0,
        "tasks_created": 0,
        "errors": [],
    }

    entries = data.get("lists")
    if not isinstance(entries, list):
        raise ValueError("YAML 'lists' must be a list")

    existing = lists.list_all()
    for list_data in entries:
        list_name = list_data.get("name", "unnamed") if isinstance(list_data, dict) else "invalid"
        try:
            if not isinstance(list_data, dict):
                raise ValueError("List data must be a dictionary")
            name = list_data.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ValueError("List must have a non-empty 'name' field")

            task_list = _find_list_by_name(existing, name)
            if task_list is None:
                task_list = lists.create(name)
                existing.append(task_list)
                stats["lists_created"] += 1
            else:
                stats["lists_reused"] += 1
        except (ValueError, DuplicateNameError) as e:
            stats["errors"].append(f"Failed to import list '{list_name}': {e}")
            continue

        task_entries = list_data.get("tasks") or []
        if not isinstance(task_entries, list):
            stats["errors"].append(f"Tasks of list '{task_list.name}' must be a list")
            continue

        for task_data in task_entries:
            try:
                _import_task(tasks, task_list.id, task_data)
                stats["tasks_created"] += 1
            except (ValueError, NotFoundError) as e:
                title = task_data.get("title", "unnamed") if isinstance(task_data, dict) else "invalid"
                stats["errors"].append(f"Failed to import task '{title}': {e}")

    logger.info(
        f"Import finished: {stats['lists_created']} lists created, "
        f"{stats['lists_reused']} reused, {stats['tasks_created']} tasks, "
        f"{len(stats['errors'])} errors"
    )
    return stats
