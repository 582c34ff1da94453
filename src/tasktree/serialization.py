"""
Conversion between the in-memory task tree and its storage-safe RawDocument.

RawDocument shape (a JSON array of top-level records):

    {
        "id": "5f0c...",
        "title": "Buy milk",
        "completed": false,
        "color": "bg-card",
        "tags": ["errand"],
        "reminder": "2025-01-31T13:45:00+00:00",   # or null / omitted
        "subtasks": [ <record with "parentId" set and "subtasks": []> ],
        "parentId": null,
        "created": 3
    }

Documents written by the browser version of the app (numeric string ids,
"...Z" timestamps, no "created", sometimes no "subtasks") load as well.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import MalformedPersistedData
from .models import Node, Subtask, Task, TaskColor, TaskTree, normalize_tags
from .utils import format_timestamp, to_utc

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
RawDocument = List[RawRecord]


class _RecordBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    completed: bool = False
    color: Optional[str] = None
    tags: Optional[List[str]] = None
    reminder: Optional[datetime] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    created: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        # Older documents may carry numeric ids.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("reminder")
    @classmethod
    def normalize_reminder(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v)


class SubtaskRecord(_RecordBase):
    """Persisted subtask. Any nested "subtasks" field is ignored (depth cap)."""


class TaskRecord(_RecordBase):
    """Persisted top-level task."""

    subtasks: Optional[List[SubtaskRecord]] = None


_DOCUMENT = TypeAdapter(List[TaskRecord])


def _record(node: Node) -> RawRecord:
    return {
        "id": node.id,
        "title": node.title,
        "completed": node.completed,
        "color": node.color.value,
        "tags": list(node.tags),
        "reminder": format_timestamp(node.reminder) if node.reminder is not None else None,
        "subtasks": [_record(sub) for sub in node.subtasks],
        "parentId": node.parent_id,
        "created": node.created,
    }


# PUBLIC_INTERFACE
def serialize(tree: Sequence[Task]) -> RawDocument:
    """Convert the tree into a RawDocument; timestamps become ISO8601 UTC strings."""
    return [_record(task) for task in tree]


def _created(record: _RecordBase, position: int) -> int:
    if record.created is not None:
        return record.created
    # Legacy ids were creation timestamps in milliseconds.
    if record.id.isdigit():
        return int(record.id)
    return position


# PUBLIC_INTERFACE
def deserialize(doc: Optional[Sequence[Any]]) -> TaskTree:
    """
    Rebuild a tree from a RawDocument.

    None or an empty document yields an empty tree. A missing "subtasks" field
    yields no subtasks; a missing or null reminder yields no reminder.

    Raises:
        MalformedPersistedData: the document does not match the record shape
            (e.g. an unparseable timestamp) or repeats an id.
    """
    if not doc:
        return []
    try:
        records = _DOCUMENT.validate_python(doc)
    except ValidationError as e:
        raise MalformedPersistedData(f"Persisted document failed validation: {e.error_count()} error(s)") from e

    seen: set = set()
    position = 0
    tree: TaskTree = []

    def claim(record_id: str) -> None:
        if record_id in seen:
            raise MalformedPersistedData(f"Duplicate task id in persisted document: {record_id}")
        seen.add(record_id)

    for rec in records:
        claim(rec.id)
        task_created = _created(rec, position)
        position += 1
        subtasks: List[Subtask] = []
        for sub in rec.subtasks or []:
            claim(sub.id)
            subtasks.append(
                Subtask(
                    id=sub.id,
                    title=sub.title,
                    # Re-derived from the container; the stored value is informational.
                    parent_id=rec.id,
                    created=_created(sub, position),
                    completed=sub.completed,
                    color=TaskColor.from_raw(sub.color),
                    tags=normalize_tags(sub.tags),
                    reminder=sub.reminder,
                )
            )
            position += 1
        tree.append(
            Task(
                id=rec.id,
                title=rec.title,
                created=task_created,
                completed=rec.completed,
                color=TaskColor.from_raw(rec.color),
                tags=normalize_tags(rec.tags),
                reminder=rec.reminder,
                subtasks=tuple(subtasks),
            )
        )
    logger.debug("Deserialized %d top-level task(s)", len(tree))
    return tree


# PUBLIC_INTERFACE
def dumps(tree: Sequence[Task]) -> str:
    """Serialize the tree to JSON text."""
    return json.dumps(serialize(tree), ensure_ascii=False)


# PUBLIC_INTERFACE
def loads(text: Optional[str]) -> TaskTree:
    """
    Parse JSON text into a tree. None or blank text yields an empty tree.

    Raises:
        MalformedPersistedData: the text is not JSON or not a valid document.
    """
    if text is None or not text.strip():
        return []
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPersistedData(f"Persisted document is not valid JSON: {e.msg}") from e
    if doc is not None and not isinstance(doc, list):
        raise MalformedPersistedData("Persisted document must be a JSON array of tasks")
    return deserialize(doc)
