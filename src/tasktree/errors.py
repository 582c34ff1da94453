from __future__ import annotations

from typing import Optional


class TaskTreeError(Exception):
    """Base class for task tree errors."""


# PUBLIC_INTERFACE
class InvalidInput(TaskTreeError, ValueError):
    """
    Raised when a title is empty or whitespace-only on add/update.

    Raised before any mutation, so the tree is left unchanged.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


# PUBLIC_INTERFACE
class NotFound(TaskTreeError, LookupError):
    """
    Raised when a subtask is added under a parent id that matches no top-level task.

    Update and delete on unknown ids do not raise; they are silent no-ops.
    """

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


# PUBLIC_INTERFACE
class MalformedPersistedData(TaskTreeError, ValueError):
    """Raised when a persisted document cannot be parsed back into a tree."""
