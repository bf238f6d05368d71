"""Parent/child rules for task types.

Allowed parents:
    - epic: top level only, never has a parent
    - user_story: epic
    - task: epic or user_story
    - bug: epic, user_story or task
    - sub_task: user_story, task or bug, and a parent is required

A task can't be its own parent, and can't be moved under one of its own
descendants.

Import validate_parent() from here. Do not duplicate this logic.
"""

from db.schema import Task
from db.task_store import TaskNotFoundError, TaskStore

ALLOWED_PARENT_TYPES: dict[str, tuple[str, ...]] = {
    "epic": (),
    "user_story": ("epic",),
    "task": ("epic", "user_story"),
    "bug": ("epic", "user_story", "task"),
    "sub_task": ("user_story", "task", "bug"),
}


class HierarchyError(Exception):
    """Base class for parent/child rule violations."""


class ParentNotFoundError(HierarchyError):
    def __init__(self, parent_id: int) -> None:
        super().__init__(f"Parent task {parent_id} not found")
        self.parent_id = parent_id


class SubtaskRequiresParentError(HierarchyError):
    def __init__(self, task_id: int | None = None) -> None:
        super().__init__("SubTask must have a parent task")
        self.task_id = task_id


class InvalidParentTypeError(HierarchyError):
    def __init__(
        self,
        task_id: int | None,
        task_type: str,
        parent_id: int,
        parent_type: str,
    ) -> None:
        self.task_id = task_id
        self.task_type = task_type
        self.parent_id = parent_id
        self.parent_type = parent_type
        self.expected_types = list(ALLOWED_PARENT_TYPES[task_type])
        expected = ", ".join(self.expected_types) or "no parent"
        label = f"Task {task_id}" if task_id is not None else f"A {task_type}"
        super().__init__(
            f"Invalid parent type: {label} cannot have parent {parent_id} "
            f"of type '{parent_type}'. Expected: {expected}"
        )


class ParentCycleError(HierarchyError):
    def __init__(self, task_id: int, parent_id: int) -> None:
        super().__init__(
            f"Task {parent_id} is task {task_id} or one of its descendants "
            "and cannot become its parent"
        )
        self.task_id = task_id
        self.parent_id = parent_id


def validate_parent(
    store: TaskStore,
    task_type: str,
    parent_id: int | None,
    task_id: int | None = None,
) -> None:
    """Validate that a task of `task_type` may sit under `parent_id`.

    `task_id` is None for a task that doesn't exist yet. Unknown types are
    left to record validation.
    Raises a HierarchyError subclass on violation.
    """
    if task_type not in ALLOWED_PARENT_TYPES:
        return

    if parent_id is None:
        if task_type == "sub_task":
            raise SubtaskRequiresParentError(task_id)
        return

    if task_id is not None and parent_id == task_id:
        raise ParentCycleError(task_id, parent_id)

    try:
        parent = store.get(parent_id)
    except TaskNotFoundError as e:
        raise ParentNotFoundError(parent_id) from e

    if parent.type not in ALLOWED_PARENT_TYPES[task_type]:
        raise InvalidParentTypeError(task_id, task_type, parent_id, parent.type)

    if task_id is not None:
        _check_not_descendant(store, task_id, parent_id)


def _check_not_descendant(store: TaskStore, task_id: int, parent_id: int) -> None:
    """Walk up from `parent_id`; reaching `task_id` means a parent loop."""
    seen: set[int] = set()
    current: int | None = parent_id
    while current is not None and current not in seen:
        if current == task_id:
            raise ParentCycleError(task_id, parent_id)
        seen.add(current)
        try:
            current = store.get(current).parent_id
        except TaskNotFoundError:
            return


def validate_children(store: TaskStore, task_id: int, new_type: str) -> None:
    """Check that every child of `task_id` still accepts it as parent after
    its type changes to `new_type`."""
    for child in get_children(store, task_id):
        if new_type not in ALLOWED_PARENT_TYPES.get(child.type, ()):
            raise InvalidParentTypeError(child.id, child.type, task_id, new_type)


def get_children(store: TaskStore, task_id: int) -> list[Task]:
    """Tasks whose parentId is `task_id`, ordered by id."""
    return [t for t in store.list_all() if t.parent_id == task_id]
