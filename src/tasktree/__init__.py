"""
Task Tree package.

Hierarchical tasks (one level of subtasks) with tags, colors and reminders,
a filter/sort view engine and local persistence. The FastAPI app lives in
`tasktree.main`; the Python API is re-exported here.
"""

from .errors import InvalidInput, MalformedPersistedData, NotFound, TaskTreeError
from .models import Subtask, Task, TaskColor, TaskDraft
from .schemas import FilterState, TaskCreate, TaskUpdate
from .serialization import deserialize, serialize
from .service import TaskManager

__all__ = [
    "FilterState",
    "InvalidInput",
    "MalformedPersistedData",
    "NotFound",
    "Subtask",
    "Task",
    "TaskColor",
    "TaskCreate",
    "TaskDraft",
    "TaskManager",
    "TaskTreeError",
    "TaskUpdate",
    "deserialize",
    "serialize",
]
