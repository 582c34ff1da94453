from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union


# PUBLIC_INTERFACE
class TaskColor(str, Enum):
    """
    Fixed card color palette. DEFAULT means "no special color".
    """

    DEFAULT = "bg-card"
    BLUE = "bg-blue-50"
    GREEN = "bg-green-50"
    YELLOW = "bg-yellow-50"
    RED = "bg-red-50"
    PURPLE = "bg-purple-50"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> TaskColor:
        if not raw:
            return cls.DEFAULT
        try:
            return cls(raw)
        except ValueError:
            return cls.DEFAULT


# Fields a caller may change through update; identity and structure are not among them.
UPDATABLE_FIELDS: FrozenSet[str] = frozenset({"title", "completed", "color", "tags", "reminder"})


def normalize_tags(tags: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Trim tags, drop empty ones and suppress duplicates, keeping first-seen order."""
    out: list = []
    for raw in tags or ():
        tag = str(raw).strip()
        if tag and tag not in out:
            out.append(tag)
    return tuple(out)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TaskDraft:
    """
    Caller-supplied data for a new task or subtask.

    Precondition: `title.strip()` is non-empty. The Mutation API checks this
    before a draft reaches the tree.
    """

    title: str
    tags: Tuple[str, ...] = ()
    reminder: Optional[datetime] = None
    color: TaskColor = TaskColor.DEFAULT


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Subtask:
    """
    A leaf task nested in exactly one top-level Task.

    Fields:
    - id: Unique across the whole tree
    - title: Display title (trimmed, non-empty)
    - parent_id: Id of the containing top-level task (descriptive only)
    - created: Creation sequence number, used for "created" ordering
    - completed: Completion flag
    - color: Palette color
    - tags: Ordered, duplicate-free tags
    - reminder: Optional aware UTC datetime
    """

    id: str
    title: str
    parent_id: str
    created: int = 0
    completed: bool = False
    color: TaskColor = TaskColor.DEFAULT
    tags: Tuple[str, ...] = ()
    reminder: Optional[datetime] = None

    @property
    def subtasks(self) -> Tuple[()]:
        # Leaves never own children.
        return ()


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Task:
    """
    A top-level task. Owns an ordered sequence of Subtask leaves.

    Same fields as Subtask, minus parent_id, plus subtasks.
    """

    id: str
    title: str
    created: int = 0
    completed: bool = False
    color: TaskColor = TaskColor.DEFAULT
    tags: Tuple[str, ...] = ()
    reminder: Optional[datetime] = None
    subtasks: Tuple[Subtask, ...] = field(default_factory=tuple)

    @property
    def parent_id(self) -> None:
        return None


Node = Union[Task, Subtask]
TaskTree = List[Task]
