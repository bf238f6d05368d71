"""Filtering, sorting and pagination over the task collection."""

from collections.abc import Collection

from db.schema import PRIORITY_RANK, Task
from task_guardian.models import TaskQueryFilters, TaskSort

_SORT_KEYS = {
    "createdAt": lambda t: t.created_at,
    "updatedAt": lambda t: t.updated_at,
    "priority": lambda t: PRIORITY_RANK.get(t.priority, 0),
    "title": lambda t: t.title,
}


def paginate(tasks: list[Task], limit: int | None, offset: int | None) -> list[Task]:
    start = offset or 0
    if limit:
        return tasks[start : start + limit]
    return tasks[start:]


def filter_tasks(
    tasks: list[Task],
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    parent_id: int | None = None,
) -> list[Task]:
    """Equality filters used by list_tasks."""
    return [
        t
        for t in tasks
        if (status is None or t.status == status)
        and (priority is None or t.priority == priority)
        and (task_type is None or t.type == task_type)
        and (parent_id is None or t.parent_id == parent_id)
    ]


def query_tasks(
    tasks: list[Task],
    filters: TaskQueryFilters | None = None,
    sort: TaskSort | None = None,
    blocking_ids: Collection[int] = (),
) -> list[Task]:
    """Apply query filters and sort. `blocking_ids` are ids that are an
    endpoint of at least one blocking link (for has_dependencies)."""
    result = list(tasks)

    if filters is not None:
        f = filters
        if f.status:
            result = [t for t in result if t.status in f.status]
        if f.priority:
            result = [t for t in result if t.priority in f.priority]
        if f.type:
            result = [t for t in result if t.type in f.type]
        if f.parent_id is not None:
            result = [t for t in result if t.parent_id == f.parent_id]
        if f.has_dependencies is not None:
            result = [
                t for t in result if (t.id in blocking_ids) == f.has_dependencies
            ]
        if f.title_contains:
            needle = f.title_contains.lower()
            result = [t for t in result if needle in t.title.lower()]
        if f.description_contains:
            needle = f.description_contains.lower()
            result = [t for t in result if needle in t.description.lower()]

    if sort is not None:
        result.sort(key=_SORT_KEYS[sort.field], reverse=sort.order == "desc")

    return result
