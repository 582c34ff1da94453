from __future__ import annotations

from typing import List, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..errors import NotFound
from ..models import Subtask, Task
from ..schemas import FilterState, SortBy, StatusFilter, SubtaskOut, TaskCreate, TaskOut, TaskUpdate, node_out
from ..service import TaskManager, get_task_manager

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)

NodeOut = Union[TaskOut, SubtaskOut]


def _get_manager(manager: TaskManager = Depends(get_task_manager)) -> TaskManager:
    """
    Dependency wrapper for the task manager to keep signatures clean.
    """
    return manager


def _node_or_404(manager: TaskManager, task_id: str) -> Union[Task, Subtask]:
    node = manager.get_task(task_id)
    if node is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return node


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new top-level task and return it.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_task(payload: TaskCreate, manager: TaskManager = Depends(_get_manager)) -> TaskOut:
    """
    Create a new top-level task.
    """
    created = manager.add_task(payload)
    return node_out(created)


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/subtasks",
    response_model=SubtaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Subtask",
    description="Append a subtask to the top-level task with the given ID.",
    responses={
        201: {"description": "Subtask created successfully"},
        404: {"description": "Parent task not found"},
        422: {"description": "Validation error"},
    },
)
def create_subtask(task_id: str, payload: TaskCreate, manager: TaskManager = Depends(_get_manager)) -> SubtaskOut:
    """
    Create a subtask. Only top-level tasks can own subtasks.
    """
    try:
        created = manager.add_task(payload, parent_id=task_id)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent task not found")
    return node_out(created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TaskOut],
    summary="List Tasks",
    description=(
        "List top-level tasks (with their subtasks) visible under the given filters.\n\n"
        "Query parameters:\n"
        "- search: case-insensitive substring of the task's or a subtask's title\n"
        "- tag: tag carried by the task or a subtask; 'all' disables the filter\n"
        "- status: all, completed, pending or overdue\n"
        "- sortBy: created, title or reminder"
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        422: {"description": "Invalid query parameters"},
    },
)
def list_tasks(
    search: str = Query("", description="Search text for titles"),
    tag: str = Query("all", description="Tag filter, or 'all'"),
    status_filter: StatusFilter = Query("all", alias="status", description="Status filter"),
    sort_by: SortBy = Query("created", alias="sortBy", description="Sort order"),
    manager: TaskManager = Depends(_get_manager),
) -> List[TaskOut]:
    """
    List filtered, sorted tasks.
    """
    state = FilterState(search=search.strip(), tag=tag.strip() or "all", status=status_filter, sort_by=sort_by)
    return [TaskOut.from_node(t) for t in manager.get_filtered_sorted_tasks(state)]


# PUBLIC_INTERFACE
@router.get(
    "/tags",
    response_model=List[str],
    summary="List Tags",
    description="All tags used by tasks and subtasks, in first-seen order.",
)
def list_tags(manager: TaskManager = Depends(_get_manager)) -> List[str]:
    """
    Return every tag in use.
    """
    return manager.get_all_tags()


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=NodeOut,
    summary="Get Task",
    description="Get a single task or subtask by ID.",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
def get_task(task_id: str, manager: TaskManager = Depends(_get_manager)) -> NodeOut:
    """
    Retrieve a single task or subtask by its ID.
    """
    return node_out(_node_or_404(manager, task_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=NodeOut,
    summary="Update Task",
    description="Partially update fields of a task or subtask.",
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
        422: {"description": "Validation error"},
    },
)
def patch_task(task_id: str, payload: TaskUpdate, manager: TaskManager = Depends(_get_manager)) -> NodeOut:
    """
    Partial update of a task or subtask.
    """
    if not manager.update_task(task_id, payload):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return node_out(_node_or_404(manager, task_id))


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/toggle",
    response_model=NodeOut,
    summary="Toggle Completion",
    description="Flip the completion flag of a task or subtask.",
    responses={
        200: {"description": "Task toggled"},
        404: {"description": "Task not found"},
    },
)
def toggle_task(task_id: str, manager: TaskManager = Depends(_get_manager)) -> NodeOut:
    """
    Toggle completion.
    """
    if not manager.toggle_complete(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return node_out(_node_or_404(manager, task_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description=(
        "Delete a task (with its subtasks) or a subtask by ID. "
        "Unknown IDs are ignored, so the call is idempotent."
    ),
    responses={
        204: {"description": "Task deleted or already absent"},
    },
)
def delete_task(task_id: str, manager: TaskManager = Depends(_get_manager)) -> Response:
    """
    Delete a task. Always returns 204.
    """
    manager.delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
