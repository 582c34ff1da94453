"""
Mutation API: the operations UI collaborators call.

Each mutation validates its input, applies one pure tree transform, swaps the
resulting tree in with a single assignment and saves the serialized tree to
the document store. Queries read the current tree snapshot.
"""
from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, List, Mapping, Optional, Union

from . import tree as tree_ops
from .errors import InvalidInput, MalformedPersistedData
from .models import Node, TaskColor, TaskDraft, TaskTree, normalize_tags
from .repositories import DocumentStore, get_document_store
from .schemas import FilterState, TaskCreate, TaskUpdate
from .serialization import dumps, loads
from .settings import get_settings
from .utils import new_task_id, parse_reminder, utcnow
from .views import extract_tags, filtered_sorted_tasks

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "todo-tasks"

NewTaskInput = Union[TaskCreate, TaskDraft, Mapping[str, Any]]
UpdateInput = Union[TaskUpdate, Mapping[str, Any]]


def _require_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidInput("title must not be empty", field="title")
    return title.strip()


def _draft(data: NewTaskInput) -> TaskDraft:
    if isinstance(data, TaskCreate):
        return data.to_draft()
    if isinstance(data, TaskDraft):
        fields: Mapping[str, Any] = {
            "title": data.title,
            "tags": data.tags,
            "reminder": data.reminder,
            "color": data.color,
        }
    else:
        fields = data
    try:
        return TaskDraft(
            title=_require_title(fields.get("title")),
            tags=normalize_tags(fields.get("tags")),
            reminder=parse_reminder(fields.get("reminder")),
            color=TaskColor(fields.get("color") or TaskColor.DEFAULT),
        )
    except InvalidInput:
        raise
    except ValueError as e:
        raise InvalidInput(str(e)) from e


def _changes(update: UpdateInput) -> dict:
    raw = update.changes() if isinstance(update, TaskUpdate) else dict(update)
    out: dict = {}
    try:
        for name, value in raw.items():
            if name == "title":
                out[name] = _require_title(value)
            elif name == "tags":
                out[name] = normalize_tags(value)
            elif name == "reminder":
                out[name] = parse_reminder(value)
            elif name == "color":
                out[name] = TaskColor(value or TaskColor.DEFAULT)
            elif name == "completed":
                if not isinstance(value, bool):
                    raise InvalidInput("completed must be a boolean", field="completed")
                out[name] = value
            else:
                out[name] = value
    except InvalidInput:
        raise
    except ValueError as e:
        raise InvalidInput(str(e)) from e
    return out


# PUBLIC_INTERFACE
class TaskManager:
    """
    Owns the process-wide task tree for one session.

    Loaded once from the document store at construction; every successful
    mutation saves the whole tree back under `storage_key`.

    Missing ids on update/delete/toggle are silent no-ops (the methods return
    False): a caller may race with a delete, and that is not an error.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        id_factory: Callable[[], str] = new_task_id,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._key = storage_key
        self._id_factory = id_factory
        self._clock = clock
        self._lock = RLock()
        self._tree: TaskTree = self._load()
        self._next_created = max((n.created for n in tree_ops.iter_nodes(self._tree)), default=0) + 1

    def _load(self) -> TaskTree:
        raw = self._store.load(self._key)
        try:
            tree = loads(raw)
        except MalformedPersistedData:
            logger.warning("Discarding malformed task document key=%s; starting empty", self._key, exc_info=True)
            return []
        logger.info("Loaded %d task(s) key=%s", tree_ops.count_nodes(tree), self._key)
        return tree

    def _commit(self, new_tree: TaskTree) -> None:
        self._tree = new_tree
        self._store.save(self._key, dumps(new_tree))

    def _fresh_id(self) -> str:
        # Guard against a custom id_factory handing out an id already in use.
        while True:
            candidate = self._id_factory()
            if tree_ops.find_task(self._tree, candidate) is None:
                return candidate

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def storage_key(self) -> str:
        return self._key

    @property
    def tasks(self) -> TaskTree:
        """Snapshot of the top-level tasks in insertion order."""
        return list(self._tree)

    # PUBLIC_INTERFACE
    def add_task(self, data: NewTaskInput, parent_id: Optional[str] = None) -> Node:
        """
        Create a task (or a subtask of `parent_id`) and persist.

        Raises:
            InvalidInput: blank title or unparseable field; tree unchanged.
            NotFound: `parent_id` matches no top-level task; tree unchanged.
        """
        draft = _draft(data)
        with self._lock:
            new_tree, node = tree_ops.add_task(
                self._tree,
                draft,
                parent_id,
                task_id=self._fresh_id(),
                created=self._next_created,
            )
            self._next_created += 1
            self._commit(new_tree)
        logger.info("Added task id=%s parent=%s", node.id, parent_id)
        return node

    # PUBLIC_INTERFACE
    def update_task(self, task_id: str, changes: UpdateInput) -> bool:
        """
        Merge the given fields into the task or subtask with `task_id` and persist.

        Returns False (and changes nothing) when no node has that id.

        Raises:
            InvalidInput: blank title, unknown field or unparseable value; tree unchanged.
        """
        normalized = _changes(changes)
        with self._lock:
            new_tree, found = tree_ops.update_task(self._tree, task_id, normalized)
            self._commit(new_tree)
        if found:
            logger.debug("Updated task id=%s fields=%s", task_id, sorted(normalized))
        else:
            logger.debug("Update ignored; no task id=%s", task_id)
        return found

    # PUBLIC_INTERFACE
    def toggle_complete(self, task_id: str) -> bool:
        """Flip the completion flag of a task or subtask. False when absent."""
        with self._lock:
            node = tree_ops.find_task(self._tree, task_id)
            if node is None:
                return False
            return self.update_task(task_id, {"completed": not node.completed})

    # PUBLIC_INTERFACE
    def delete_task(self, task_id: str) -> bool:
        """
        Remove a task (with its subtasks) or a subtask and persist.

        Returns False when no node has that id.
        """
        with self._lock:
            new_tree, found = tree_ops.delete_task(self._tree, task_id)
            self._commit(new_tree)
        if found:
            logger.info("Deleted task id=%s", task_id)
        else:
            logger.debug("Delete ignored; no task id=%s", task_id)
        return found

    # PUBLIC_INTERFACE
    def get_task(self, task_id: str) -> Optional[Node]:
        return tree_ops.find_task(self._tree, task_id)

    # PUBLIC_INTERFACE
    def get_all_tags(self) -> List[str]:
        return extract_tags(self._tree)

    # PUBLIC_INTERFACE
    def get_filtered_sorted_tasks(
        self, filter_state: Optional[FilterState] = None, now: Optional[datetime] = None
    ) -> TaskTree:
        """Return visible top-level tasks for `filter_state`, sorted by its sort_by."""
        state = filter_state or FilterState.cleared()
        return filtered_sorted_tasks(self._tree, state, now if now is not None else self._clock())


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_task_manager() -> TaskManager:
    """
    Return the process-wide TaskManager, built once from settings.

    The first call loads the persisted document; later calls share that state.
    """
    settings = get_settings()
    store = get_document_store(settings)
    logger.info("Task store backend=%s key=%s", store.backend_name, settings.storage_key)
    return TaskManager(store, storage_key=settings.storage_key)
