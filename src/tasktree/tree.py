"""
Task tree transforms.

Every function here is pure: it takes a tree (a list of top-level Task objects)
and returns a new tree, never mutating its input. Nodes are frozen dataclasses,
so unchanged subtrees are shared between the old and new tree.

Search is always by id from the root; `parent_id` is never used to locate a node.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidInput, NotFound
from .models import UPDATABLE_FIELDS, Node, Subtask, Task, TaskDraft, TaskTree


# PUBLIC_INTERFACE
def add_task(
    tree: Sequence[Task],
    data: TaskDraft,
    parent_id: Optional[str] = None,
    *,
    task_id: str,
    created: int,
) -> Tuple[TaskTree, Node]:
    """
    Append a new task built from `data`.

    Without `parent_id` the task is appended to the top level. With `parent_id`
    it becomes the last subtask of the top-level task with that id.

    Raises:
        NotFound: no top-level task has id `parent_id`; the tree is unchanged.
    """
    if parent_id is None:
        node: Node = Task(
            id=task_id,
            title=data.title,
            created=created,
            color=data.color,
            tags=tuple(data.tags),
            reminder=data.reminder,
        )
        return [*tree, node], node

    for index, parent in enumerate(tree):
        if parent.id == parent_id:
            node = Subtask(
                id=task_id,
                title=data.title,
                parent_id=parent_id,
                created=created,
                color=data.color,
                tags=tuple(data.tags),
                reminder=data.reminder,
            )
            new_tree = list(tree)
            new_tree[index] = replace(parent, subtasks=(*parent.subtasks, node))
            return new_tree, node

    raise NotFound(parent_id)


def _update_nodes(nodes: Sequence[Any], task_id: str, changes: Mapping[str, Any]) -> Tuple[List[Any], bool]:
    out: List[Any] = list(nodes)
    for index, node in enumerate(nodes):
        if node.id == task_id:
            out[index] = replace(node, **changes)
            return out, True
        if node.subtasks:
            subtasks, found = _update_nodes(node.subtasks, task_id, changes)
            if found:
                out[index] = replace(node, subtasks=tuple(subtasks))
                return out, True
    return out, False


# PUBLIC_INTERFACE
def update_task(tree: Sequence[Task], task_id: str, changes: Mapping[str, Any]) -> Tuple[TaskTree, bool]:
    """
    Merge `changes` into the node with id `task_id`.

    Unspecified fields and sibling order are untouched. Ids are unique, so the
    search stops at the first match.

    Returns:
        (new_tree, found). When nothing matches, new_tree equals `tree`.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    return _update_nodes(tree, task_id, changes)


def _delete_nodes(nodes: Sequence[Any], task_id: str) -> Tuple[List[Any], bool]:
    kept: List[Any] = []
    found = False
    for node in nodes:
        if node.id == task_id:
            found = True
            continue
        # Every surviving node is examined, not just up to the first match.
        if node.subtasks:
            subtasks, removed = _delete_nodes(node.subtasks, task_id)
            if removed:
                node = replace(node, subtasks=tuple(subtasks))
                found = True
        kept.append(node)
    return kept, found


# PUBLIC_INTERFACE
def delete_task(tree: Sequence[Task], task_id: str) -> Tuple[TaskTree, bool]:
    """
    Remove the node with id `task_id`, whether top-level or a subtask.

    Removing a top-level task removes its subtasks with it. Relative order of
    all other nodes is preserved.

    Returns:
        (new_tree, found)
    """
    return _delete_nodes(tree, task_id)


# PUBLIC_INTERFACE
def iter_nodes(tree: Sequence[Task]) -> Iterator[Node]:
    """Yield every task and subtask, depth-first."""
    for task in tree:
        yield task
        yield from task.subtasks


# PUBLIC_INTERFACE
def find_task(tree: Sequence[Task], task_id: str) -> Optional[Node]:
    """Return the task or subtask with id `task_id`, or None."""
    for node in iter_nodes(tree):
        if node.id == task_id:
            return node
    return None


def count_nodes(tree: Sequence[Task]) -> int:
    return sum(1 + len(task.subtasks) for task in tree)
