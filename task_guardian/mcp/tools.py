"""MCP tool implementations for task-guardian.

Each function takes a Store and explicit params, returns a dict.
The server module registers these as MCP tools.

Failures never raise out of a tool: they come back as
{"error": <code>, "message": <text>, ...} with the ids or path needed to
explain them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from db.client import StorageError
from db.hierarchy import (
    HierarchyError,
    InvalidParentTypeError,
    ParentNotFoundError,
    SubtaskRequiresParentError,
    get_children,
    validate_children,
    validate_parent,
)
from db.link_store import LinkStore
from db.migrations import init_store
from db.schema import CORE_TASK_FIELDS, Task
from db.task_store import TaskNotFoundError, TaskStore, TaskValidationError
from task_guardian.links import (
    CycleDetectedError,
    EndpointNotFoundError,
    LinkEngine,
    LinkError,
    LinkNotFoundError,
)
from task_guardian.models import TaskInput, TaskQueryFilters, TaskSort, TaskUpdateInput
from task_guardian.query import filter_tasks, paginate, query_tasks as _query


@dataclass
class Store:
    """The task and link stores of one task directory, plus the link engine."""

    tasks: TaskStore
    links: LinkStore
    engine: LinkEngine


def open_store(task_dir: str | Path) -> Store:
    """Initialise (if needed) and open the store at `task_dir`."""
    root = init_store(task_dir)
    tasks = TaskStore(root)
    links = LinkStore(root)
    return Store(tasks=tasks, links=links, engine=LinkEngine(tasks, links))


# update_task parent_id value that removes the parent; real ids start at 1
DETACH_PARENT = 0


class HasDependentsError(Exception):
    """Raised when deleting a task that other tasks still depend on."""

    def __init__(self, task_id: int, dependent_ids: list[int]) -> None:
        super().__init__(
            f"Cannot delete task {task_id} - other tasks depend on it: "
            + ", ".join(str(i) for i in dependent_ids)
        )
        self.task_id = task_id
        self.dependent_ids = dependent_ids


_TOOL_ERRORS = (
    TaskNotFoundError,
    TaskValidationError,
    HierarchyError,
    LinkError,
    HasDependentsError,
    StorageError,
)


def _error_response(e: Exception) -> dict[str, Any]:
    """Map a tool failure to its structured error dict."""
    message = str(e)
    if isinstance(e, (TaskNotFoundError, EndpointNotFoundError)):
        return {"error": "not_found", "message": message, "task_id": e.task_id}
    if isinstance(e, CycleDetectedError):
        return {"error": "cycle_detected", "message": message, "path": e.path}
    if isinstance(e, LinkNotFoundError):
        if e.link_id is not None:
            return {"error": "link_not_found", "message": message, "link_id": e.link_id}
        return {
            "error": "link_not_found",
            "message": message,
            "from_task_id": e.from_id,
            "to_task_id": e.to_id,
        }
    if isinstance(e, TaskValidationError):
        return {
            "error": "validation_error",
            "message": f"Validation error: {e.message}",
            "details": e.details,
        }
    if isinstance(e, ParentNotFoundError):
        return {"error": "parent_not_found", "message": message, "parent_id": e.parent_id}
    if isinstance(e, InvalidParentTypeError):
        return {
            "error": "invalid_parent_type",
            "message": message,
            "task_id": e.task_id,
            "parent_id": e.parent_id,
            "parent_type": e.parent_type,
            "expected_types": e.expected_types,
        }
    if isinstance(e, SubtaskRequiresParentError):
        return {"error": "subtask_requires_parent", "message": message}
    if isinstance(e, HasDependentsError):
        return {
            "error": "has_dependents",
            "message": message,
            "dependent_ids": e.dependent_ids,
        }
    if isinstance(e, StorageError):
        return {
            "error": "storage_error",
            "message": f"File system error during {e.operation}",
            "operation": e.operation,
        }
    return {"error": "validation_error", "message": message}


def _validation_error(message: str, e: ValidationError | None = None) -> dict[str, Any]:
    result: dict[str, Any] = {"error": "validation_error", "message": message}
    if e is not None:
        result["details"] = e.errors(
            include_url=False, include_context=False, include_input=False
        )
    return result


def _task_fields(
    title: str | None = None,
    description: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    parent_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build record keys from tool params. Metadata can't shadow core fields."""
    fields = {k: v for k, v in (metadata or {}).items() if k not in CORE_TASK_FIELDS}
    for key, value in (
        ("title", title),
        ("description", description),
        ("status", status),
        ("priority", priority),
        ("type", task_type),
        ("parentId", parent_id),
    ):
        if value is not None:
            fields[key] = value
    return fields


def _links_of(store: Store, task_id: int) -> dict[str, list[dict[str, Any]]]:
    links = store.engine.get_links(task_id)
    return {
        "from": [link.to_record() for link in links["from"]],
        "to": [link.to_record() for link in links["to"]],
    }


# ── Task tools ────────────────────────────────────────────


def create_task(
    store: Store,
    title: str,
    description: str = "",
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    parent_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a single task. Unknown metadata keys are stored on the record."""
    fields = _task_fields(
        title, description, status, priority, task_type, parent_id, metadata
    )
    try:
        validate_parent(store.tasks, task_type or "task", parent_id)
        task = store.tasks.create(fields)
    except _TOOL_ERRORS as e:
        return _error_response(e)
    return task.to_record()


def create_tasks(
    store: Store,
    tasks: list[TaskInput | dict[str, Any]],
) -> dict[str, Any]:
    """Create tasks one by one; a failure doesn't stop the rest of the batch."""
    success: list[dict[str, Any]] = []
    failed: list[dict[str, Any]] = []

    for index, item in enumerate(tasks):
        try:
            spec = item if isinstance(item, TaskInput) else TaskInput.model_validate(item)
        except ValidationError as e:
            failed.append({"index": index, "error": _validation_error("Invalid task input", e)})
            continue

        result = create_task(
            store,
            spec.title,
            spec.description,
            spec.status,
            spec.priority,
            spec.type,
            spec.parent_id,
            spec.metadata,
        )
        if "error" in result:
            failed.append({"index": index, "error": result})
        else:
            success.append(result)

    return {"success": success, "failed": failed}


def get_task(store: Store, task_id: int) -> dict[str, Any]:
    """Return a task record with its outgoing and incoming links."""
    try:
        task = store.tasks.get(task_id)
        links = _links_of(store, task_id)
    except _TOOL_ERRORS as e:
        return _error_response(e)

    result = task.to_record()
    result["links"] = links
    return result


def update_task(
    store: Store,
    task_id: int,
    title: str | None = None,
    description: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    parent_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Update fields of an existing task. Only the given fields change.

    `parent_id=None` keeps the current parent; `parent_id=0` removes it.
    """
    detach = parent_id == DETACH_PARENT
    changes = _task_fields(
        title,
        description,
        status,
        priority,
        task_type,
        None if detach else parent_id,
        metadata,
    )
    if detach:
        changes["parentId"] = None
    try:
        current = store.tasks.get(task_id)
        new_type = task_type or current.type
        if detach:
            new_parent = None
        else:
            new_parent = parent_id if parent_id is not None else current.parent_id
        if new_type != current.type or new_parent != current.parent_id:
            validate_parent(store.tasks, new_type, new_parent, task_id=task_id)
        if new_type != current.type:
            validate_children(store.tasks, task_id, new_type)
        task = store.tasks.update(task_id, changes)
    except _TOOL_ERRORS as e:
        return _error_response(e)
    return task.to_record()


def update_tasks(
    store: Store,
    updates: list[TaskUpdateInput | dict[str, Any]],
) -> dict[str, Any]:
    """Apply several updates; a failure doesn't stop the rest of the batch."""
    success: list[dict[str, Any]] = []
    failed: list[dict[str, Any]] = []

    for item in updates:
        try:
            spec = (
                item
                if isinstance(item, TaskUpdateInput)
                else TaskUpdateInput.model_validate(item)
            )
        except ValidationError as e:
            task_id = item.get("task_id") if isinstance(item, dict) else None
            failed.append(
                {"task_id": task_id, "error": _validation_error("Invalid update input", e)}
            )
            continue

        result = update_task(
            store,
            spec.task_id,
            spec.title,
            spec.description,
            spec.status,
            spec.priority,
            spec.type,
            spec.parent_id,
            spec.metadata,
        )
        if "error" in result:
            failed.append({"task_id": spec.task_id, "error": result})
        else:
            success.append(result)

    return {"success": success, "failed": failed}


def delete_task(store: Store, task_id: int, force: bool = False) -> dict[str, Any]:
    """Delete a task and every link touching it.

    Refused while other tasks depend on it (tasks it blocks, or its
    children) unless `force` is set. Forced deletion detaches children,
    but is still refused while a sub_task child exists, since a sub_task
    cannot lose its parent. Links are purged before the record goes, so a
    failed purge leaves both in place.
    """
    try:
        store.tasks.get(task_id)
        children = get_children(store.tasks, task_id)
        if force:
            dependents = [c.id for c in children if c.type == "sub_task"]
        else:
            dependents = store.engine.blocking(task_id)
            dependents += [c.id for c in children if c.id not in dependents]
        if dependents:
            raise HasDependentsError(task_id, dependents)

        removed = store.engine.purge_links_for_task(task_id)
        store.tasks.delete(task_id)
        for child in children:
            store.tasks.update(child.id, {"parentId": None})
    except _TOOL_ERRORS as e:
        return _error_response(e)

    return {"success": True, "task_id": task_id, "links_removed": removed}


def list_tasks(
    store: Store,
    status: str | None = None,
    priority: str | None = None,
    task_type: str | None = None,
    parent_id: int | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> dict[str, Any]:
    """List tasks ordered by id with optional equality filters."""
    try:
        tasks = store.tasks.list_all()
    except _TOOL_ERRORS as e:
        return _error_response(e)

    filtered = filter_tasks(tasks, status, priority, task_type, parent_id)
    page = paginate(filtered, limit, offset)
    return {"tasks": [t.to_record() for t in page], "count": len(page)}


def query_tasks(
    store: Store,
    filters: TaskQueryFilters | dict[str, Any] | None = None,
    sort: TaskSort | dict[str, Any] | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> dict[str, Any]:
    """Filter, sort and paginate tasks. `total` counts matches before paging."""
    try:
        if isinstance(filters, dict):
            filters = TaskQueryFilters.model_validate(filters)
        if isinstance(sort, dict):
            sort = TaskSort.model_validate(sort)
    except ValidationError as e:
        return _validation_error("Invalid query", e)

    try:
        tasks = store.tasks.list_all()
        blocking_ids = _blocking_endpoints(store)
    except _TOOL_ERRORS as e:
        return _error_response(e)

    matched: list[Task] = _query(tasks, filters, sort, blocking_ids)
    page = paginate(matched, limit, offset)
    return {"tasks": [t.to_record() for t in page], "total": len(matched)}


def _blocking_endpoints(store: Store) -> set[int]:
    ids: set[int] = set()
    for link in store.links.find_all():
        if link.is_blocking:
            ids.update((link.from_id, link.to_id))
    return ids


# ── Link tools ────────────────────────────────────────────


def link_tasks(
    store: Store,
    from_task_id: int,
    to_task_id: int,
    link_type: str,
    description: str | None = None,
) -> dict[str, Any]:
    """Create a typed link. Blocking links that would form a cycle are rejected."""
    try:
        link = store.engine.create_link(from_task_id, to_task_id, link_type, description)
    except _TOOL_ERRORS as e:
        return _error_response(e)
    return link.to_record()


def unlink_tasks(
    store: Store,
    link_id: int | None = None,
    from_task_id: int | None = None,
    to_task_id: int | None = None,
) -> dict[str, Any]:
    """Remove one link by id, or every link from_task_id -> to_task_id.

    Exactly one of the two forms must be given.
    """
    has_pair = from_task_id is not None and to_task_id is not None
    has_partial_pair = (from_task_id is None) != (to_task_id is None)
    if (link_id is None) == (not has_pair) or has_partial_pair:
        return _validation_error(
            "Either link_id or both from_task_id and to_task_id must be provided"
        )

    try:
        if link_id is not None:
            store.engine.delete_link(link_id)
            return {"success": True, "link_id": link_id, "deleted_count": 1}

        count = store.engine.delete_links_between(from_task_id, to_task_id)
    except _TOOL_ERRORS as e:
        return _error_response(e)

    return {
        "success": True,
        "deleted_count": count,
        "from_task_id": from_task_id,
        "to_task_id": to_task_id,
    }


def get_links(store: Store, task_id: int) -> dict[str, Any]:
    """Outgoing ("from") and incoming ("to") links of a task, in creation order."""
    try:
        return _links_of(store, task_id)
    except _TOOL_ERRORS as e:
        return _error_response(e)
