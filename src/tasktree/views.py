"""
Derived views over the task tree: tag aggregation, overdue detection,
filtering and sorting.

All functions are pure. Given the same tree, FilterState and `now` they return
the same ordered result and never modify the tree.
"""
from __future__ import annotations

import locale
import logging
import unicodedata
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import Node, Task
from .tree import iter_nodes
from .utils import to_utc, utcnow

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .schemas import FilterState


# PUBLIC_INTERFACE
def extract_tags(tree: Sequence[Task]) -> List[str]:
    """Return every tag used by a task or subtask, depth-first, in first-seen order."""
    seen: Dict[str, None] = {}
    for node in iter_nodes(tree):
        for tag in node.tags:
            seen.setdefault(tag, None)
    return list(seen)


# PUBLIC_INTERFACE
def is_overdue(node: Node, now: Optional[datetime] = None) -> bool:
    """True iff the node has a reminder earlier than `now` and is not completed."""
    if node.reminder is None or node.completed:
        return False
    current = to_utc(now) if now is not None else utcnow()
    return node.reminder < current


# PUBLIC_INTERFACE
def is_overdue_inclusive(task: Task, now: Optional[datetime] = None) -> bool:
    """True iff the task itself or any of its subtasks is overdue."""
    return is_overdue(task, now) or any(is_overdue(sub, now) for sub in task.subtasks)


def task_progress(task: Task) -> Tuple[int, int]:
    """Return (completed subtasks, total subtasks)."""
    done = sum(1 for sub in task.subtasks if sub.completed)
    return done, len(task.subtasks)


def _matches_search(task: Task, needle: str) -> bool:
    if needle in task.title.lower():
        return True
    return any(needle in sub.title.lower() for sub in task.subtasks)


def _matches_tag(task: Task, tag: str) -> bool:
    return tag in task.tags or any(tag in sub.tags for sub in task.subtasks)


def _matches_status(task: Task, status: str, now: datetime) -> bool:
    if status == "completed":
        return task.completed or any(sub.completed for sub in task.subtasks)
    if status == "pending":
        return not task.completed and not is_overdue_inclusive(task, now)
    if status == "overdue":
        return is_overdue_inclusive(task, now)
    return True


# PUBLIC_INTERFACE
def matches_filters(task: Task, state: FilterState, now: Optional[datetime] = None) -> bool:
    """
    Decide whether a top-level task is visible under `state`.

    Search, tag and status criteria are ANDed. Search and tag also accept a
    match on any subtask.
    """
    if state.search and not _matches_search(task, state.search.lower()):
        return False
    if state.tag != "all" and not _matches_tag(task, state.tag):
        return False
    current = to_utc(now) if now is not None else utcnow()
    return _matches_status(task, state.status, current)


# PUBLIC_INTERFACE
def filter_tasks(tree: Sequence[Task], state: FilterState, now: Optional[datetime] = None) -> List[Task]:
    """Return the top-level tasks visible under `state`, in tree order."""
    current = to_utc(now) if now is not None else utcnow()
    return [task for task in tree if matches_filters(task, state, current)]


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _title_key(task: Task) -> Any:
    # Accent-stripped first so an accented title sorts with its plain spelling
    # even under the C locale; the collated full title breaks ties.
    folded = task.title.casefold()
    return locale.strxfrm(_strip_accents(folded)), locale.strxfrm(folded)


# PUBLIC_INTERFACE
def init_collation() -> bool:
    """
    Adopt the user's collation (LC_COLLATE from the environment) for title sorting.

    Returns False and keeps the current collation when the locale is unavailable.
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.warning("Collation locale unavailable; title sort uses accent-folded code points")
        return False
    logger.debug("Title collation locale=%s", locale.setlocale(locale.LC_COLLATE))
    return True


def _reminder_key(task: Task) -> Any:
    if task.reminder is None:
        return (1, 0.0)
    return (0, task.reminder.timestamp())


def _created_key(task: Task) -> Any:
    return task.created


_SORT_KEYS: Dict[str, Callable[[Task], Any]] = {
    "title": _title_key,
    "reminder": _reminder_key,
    "created": _created_key,
}


# PUBLIC_INTERFACE
def sort_tasks(tasks: Sequence[Task], sort_by: str = "created") -> List[Task]:
    """
    Stable sort of top-level tasks.

    - title: locale-aware, case-insensitive
    - reminder: ascending; tasks without a reminder last
    - created: ascending creation sequence
    Unknown keys fall back to "created".
    """
    key = _SORT_KEYS.get(sort_by, _created_key)
    return sorted(tasks, key=key)


# PUBLIC_INTERFACE
def filtered_sorted_tasks(tree: Sequence[Task], state: FilterState, now: Optional[datetime] = None) -> List[Task]:
    """Filter then sort: the list a UI collaborator renders."""
    return sort_tasks(filter_tasks(tree, state, now), state.sort_by)
