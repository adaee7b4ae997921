"""
Exception taxonomy for the to-do list core.

NotFoundError and DuplicateNameError are expected outcomes raised by the
repositories; storage errors signal an environment failure and propagate
untouched through repository code.
"""


class TodoError(Exception):
    """Base class for all to-do manager errors."""


class NotFoundError(TodoError):
    """Referenced task list or task does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class DuplicateNameError(TodoError):
    """Task list name collides case-insensitively with an existing list."""

    def __init__(self, name: str):
        self.name = name
        super().__init__("A task list with this name already exists")


class StorageError(TodoError):
    """Base class for storage failures."""


class StorageReadError(StorageError):
    """Primary and backup documents are both unreadable."""


class StorageWriteError(StorageError):
    """Backup copy, temporary write or rename failed; the change is not durable."""
