"""Task record store: one JSON file per task under the store directory.

Ids come from the `.meta.json` counter and are never reused. Every record
is validated against the Task model on read and on write.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from db.client import IdCounter, StorageError, read_json, write_json
from db.schema import (
    LEGACY_DEPENDENCIES_KEY,
    META_FILE,
    TASK_FILE_GLOB,
    Task,
    task_filename,
    task_id_from_path,
)

logger = logging.getLogger(__name__)


class TaskNotFoundError(Exception):
    """Raised when no record exists for a task id."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class TaskValidationError(Exception):
    """Raised when a record fails Task model validation."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate(data: dict[str, Any], message: str) -> Task:
    try:
        return Task.model_validate(data)
    except ValidationError as e:
        raise TaskValidationError(
            message,
            e.errors(include_url=False, include_context=False, include_input=False),
        ) from e


def _reject_reserved(fields: dict[str, Any]) -> None:
    if LEGACY_DEPENDENCIES_KEY in fields:
        raise TaskValidationError(
            f"'{LEGACY_DEPENDENCIES_KEY}' is reserved and cannot be stored on a task"
        )


class TaskStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.counter = IdCounter(root / META_FILE)

    def _path(self, task_id: int) -> Path:
        return self.root / task_filename(task_id)

    def ids(self) -> list[int]:
        """Ids of every task file on disk, ascending."""
        found = (task_id_from_path(p) for p in self.root.glob(TASK_FILE_GLOB))
        return sorted(i for i in found if i is not None)

    def exists(self, task_id: int) -> bool:
        try:
            self.get(task_id)
        except TaskNotFoundError:
            return False
        return True

    def get(self, task_id: int) -> Task:
        path = self._path(task_id)
        if not path.exists():
            raise TaskNotFoundError(task_id)
        data = read_json(path, "get_task")
        return _validate(data, "Stored task data is invalid")

    def create(self, fields: dict[str, Any]) -> Task:
        """Validate `fields` (record keys), assign the next id and write the record.

        Validation runs before an id is allocated, so a rejected record
        does not consume one.
        """
        _reject_reserved(fields)
        now = _now()
        data = {**fields, "createdAt": now, "updatedAt": now}
        draft = _validate({**data, "id": 1}, "Task validation failed")

        task_id = self.counter.next()
        task = draft.model_copy(update={"id": task_id})
        write_json(self._path(task_id), task.to_record(), "create_task")
        logger.info("Created task %d", task_id)
        return task

    def update(self, task_id: int, changes: dict[str, Any]) -> Task:
        """Merge `changes` (record keys) into an existing task.

        `id` and `createdAt` cannot change; `updatedAt` is refreshed.
        A `None` value for `parentId` detaches the task from its parent.
        """
        _reject_reserved(changes)
        existing = self.get(task_id).to_record()
        merged = {**existing, **changes}
        if merged.get("parentId") is None:
            merged.pop("parentId", None)
        merged["id"] = task_id
        merged["createdAt"] = existing["createdAt"]
        merged["updatedAt"] = _now()

        task = _validate(merged, "Updated task validation failed")
        write_json(self._path(task_id), task.to_record(), "update_task")
        return task

    def delete(self, task_id: int) -> None:
        path = self._path(task_id)
        if not path.exists():
            raise TaskNotFoundError(task_id)
        try:
            path.unlink()
        except OSError as e:
            raise StorageError("delete_task", e) from e
        logger.info("Deleted task %d", task_id)

    def list_all(self) -> list[Task]:
        """All readable, valid tasks ordered by id. Invalid records are skipped."""
        tasks: list[Task] = []
        for task_id in self.ids():
            try:
                tasks.append(self.get(task_id))
            except TaskValidationError as e:
                logger.warning("Skipping invalid task record %d: %s", task_id, e)
            except TaskNotFoundError:
                logger.warning("Skipping task %d: record disappeared while listing", task_id)
        return tasks
