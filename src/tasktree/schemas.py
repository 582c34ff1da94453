from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import Node, Subtask, Task, TaskColor, TaskDraft, normalize_tags
from .utils import ReminderInput, parse_reminder
from .views import is_overdue, task_progress

TITLE_MAX_LENGTH = 200

StatusFilter = Literal["all", "completed", "pending", "overdue"]
SortBy = Literal["created", "title", "reminder"]


def _validate_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task or subtask.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "tags": ["errand"],
                "reminder": "2025-02-01T09:30:00Z",
                "color": "bg-card",
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=TITLE_MAX_LENGTH)
    tags: List[str] = Field(default_factory=list, description="Tags; trimmed, duplicates dropped")
    reminder: Optional[datetime] = Field(
        default=None,
        description="Reminder date/time. Accepts ISO8601 date or datetime; naive values are UTC, dates are set to 00:00",
    )
    color: TaskColor = Field(default=TaskColor.DEFAULT, description="Card color from the fixed palette")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return list(normalize_tags(v))

    @field_validator("reminder", mode="before")
    @classmethod
    def validate_reminder(cls, v: Optional[ReminderInput]) -> Optional[datetime]:
        """
        Normalize reminder from str/date/datetime to an aware UTC datetime.
        """
        return parse_reminder(v)

    def to_draft(self) -> TaskDraft:
        return TaskDraft(title=self.title, tags=tuple(self.tags), reminder=self.reminder, color=self.color)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task or subtask.
    All fields are optional; only provided fields will be updated. An explicit
    null reminder clears the reminder.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk and bread",
                "completed": True,
                "reminder": None,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task", max_length=TITLE_MAX_LENGTH)
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    color: Optional[TaskColor] = Field(default=None, description="Card color from the fixed palette")
    tags: Optional[List[str]] = Field(default=None, description="Replacement tag list")
    reminder: Optional[datetime] = Field(default=None, description="Reminder date/time, or null to clear")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _validate_title(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return list(normalize_tags(v))

    @field_validator("reminder", mode="before")
    @classmethod
    def validate_reminder(cls, v: Optional[ReminderInput]) -> Optional[datetime]:
        return parse_reminder(v)

    def changes(self) -> dict:
        """
        Return only the fields the caller explicitly set.

        None is dropped for every field except reminder, where it means "clear".
        """
        out: dict = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name != "reminder":
                continue
            out[name] = value
        return out


# PUBLIC_INTERFACE
class FilterState(BaseModel):
    """
    Transient view configuration: which top-level tasks are shown and in what order.

    Never persisted. `cleared()` is the "clear filters" action.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    search: str = Field(default="", description="Case-insensitive title substring")
    tag: str = Field(default="all", description="Tag to match, or 'all'")
    status: StatusFilter = Field(default="all", description="all, completed, pending or overdue")
    sort_by: SortBy = Field(default="created", alias="sortBy", description="created, title or reminder")

    @classmethod
    def cleared(cls) -> FilterState:
        return cls()

    @property
    def has_active_filters(self) -> bool:
        return self != FilterState.cleared()


# PUBLIC_INTERFACE
class SubtaskOut(BaseModel):
    """
    Schema returned by the API for a subtask.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str = Field(..., description="Unique identifier of the subtask")
    title: str = Field(..., description="Short title for the subtask")
    completed: bool = Field(..., description="Completion status flag")
    color: TaskColor = Field(..., description="Card color")
    tags: List[str] = Field(default_factory=list, description="Tags")
    reminder: Optional[datetime] = Field(default=None, description="Reminder as an ISO8601 UTC datetime")
    parent_id: str = Field(..., alias="parentId", description="Id of the owning top-level task")
    created: int = Field(..., description="Creation sequence number")
    overdue: bool = Field(default=False, description="Reminder is past and the subtask is not completed")

    @classmethod
    def from_node(cls, node: Subtask, *, overdue: bool = False) -> SubtaskOut:
        return cls(
            id=node.id,
            title=node.title,
            completed=node.completed,
            color=node.color,
            tags=list(node.tags),
            reminder=node.reminder,
            parent_id=node.parent_id,
            created=node.created,
            overdue=overdue,
        )


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a top-level task, subtasks included.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "id": "0b6f3c1e9a8d4f2b8c7e6d5a4b3c2d1e",
                "title": "Buy milk",
                "completed": False,
                "color": "bg-card",
                "tags": ["errand"],
                "reminder": "2025-02-01T09:30:00Z",
                "created": 1,
                "overdue": False,
                "subtasks": [],
                "completedSubtasks": 0,
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(..., description="Completion status flag")
    color: TaskColor = Field(..., description="Card color")
    tags: List[str] = Field(default_factory=list, description="Tags")
    reminder: Optional[datetime] = Field(default=None, description="Reminder as an ISO8601 UTC datetime")
    created: int = Field(..., description="Creation sequence number")
    overdue: bool = Field(default=False, description="Reminder is past and the task is not completed")
    subtasks: List[SubtaskOut] = Field(default_factory=list, description="Subtasks in insertion order")
    completed_subtasks: int = Field(default=0, alias="completedSubtasks", description="Number of completed subtasks")

    @classmethod
    def from_node(cls, node: Task, *, now: Optional[datetime] = None) -> TaskOut:
        done, _total = task_progress(node)
        return cls(
            id=node.id,
            title=node.title,
            completed=node.completed,
            color=node.color,
            tags=list(node.tags),
            reminder=node.reminder,
            created=node.created,
            overdue=is_overdue(node, now),
            subtasks=[SubtaskOut.from_node(s, overdue=is_overdue(s, now)) for s in node.subtasks],
            completed_subtasks=done,
        )


def node_out(node: Node, now: Optional[datetime] = None) -> Any:
    """Build the output schema matching the node's tier."""
    if isinstance(node, Task):
        return TaskOut.from_node(node, now=now)
    return SubtaskOut.from_node(node, overdue=is_overdue(node, now))
