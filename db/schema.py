"""Record definitions and on-disk layout for the task-guardian store.

    <task_dir>/
        .meta.json          {"lastId": <int>}  task id counter
        task-<id>.json      one task record per file
        links.json          {"lastId": <int>, "edges": [...]}
        archive/            archived task records
        backup-v1/          originals kept by the inline-dependency migration

Records are stored with camelCase keys (`parentId`, `fromId`, `createdAt`);
Python code uses the snake_case attribute names.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

META_FILE = ".meta.json"
LINKS_FILE = "links.json"
ARCHIVE_DIR = "archive"
BACKUP_DIR = "backup-v1"

TASK_FILE_GLOB = "task-*.json"

# Documents written when the store is first initialised
INITIAL_DOCUMENTS: dict[str, dict[str, Any]] = {
    META_FILE: {"lastId": 0},
    LINKS_FILE: {"lastId": 0, "edges": []},
}


def task_filename(task_id: int) -> str:
    return f"task-{task_id}.json"


def task_id_from_path(path: Path) -> int | None:
    """Parse the id out of a task-<id>.json name, or None if it isn't one.

    Only the canonical name counts: `task-007.json` is not task 7.
    """
    stem = path.name.removesuffix(".json")
    prefix, _, raw_id = stem.partition("-")
    if prefix != "task" or not raw_id.isdigit():
        return None
    task_id = int(raw_id)
    if task_filename(task_id) != path.name:
        return None
    return task_id


# ── Enumerations ────────────────────────────────────────

TaskStatus = Literal["pending", "in_progress", "completed", "blocked", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "critical"]
TaskType = Literal["epic", "user_story", "task", "sub_task", "bug"]
LinkType = Literal[
    "blocks", "is_blocked_by", "relates_to", "duplicates", "is_duplicated_by"
]

TASK_STATUSES: tuple[str, ...] = get_args(TaskStatus)
TASK_PRIORITIES: tuple[str, ...] = get_args(TaskPriority)
TASK_TYPES: tuple[str, ...] = get_args(TaskType)
LINK_TYPES: tuple[str, ...] = get_args(LinkType)

# Only these take part in cycle detection
BLOCKING_LINK_TYPES = ("blocks", "is_blocked_by")

PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}

# Keys owned by the store; everything else on a task record is metadata
CORE_TASK_FIELDS = frozenset(
    {
        "id",
        "title",
        "description",
        "status",
        "priority",
        "type",
        "parentId",
        "createdAt",
        "updatedAt",
    }
)

# Legacy inline dependency array. Only the migration reads it, so new
# records may not carry it as metadata.
LEGACY_DEPENDENCIES_KEY = "dependencies"


# ── Records ─────────────────────────────────────────────


class Task(BaseModel):
    """A task record. Unknown keys are kept as free-form metadata."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int = Field(gt=0)
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    type: TaskType = "task"
    parent_id: int | None = Field(default=None, alias="parentId", gt=0)
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    def to_record(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True)
        if data.get("parentId") is None:
            data.pop("parentId", None)
        return data

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class Link(BaseModel):
    """A typed, directed edge between two tasks. Immutable once created."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(gt=0)
    from_id: int = Field(alias="fromId", gt=0)
    to_id: int = Field(alias="toId", gt=0)
    type: LinkType
    description: str | None = None
    created_at: datetime = Field(alias="createdAt")

    @property
    def is_blocking(self) -> bool:
        return self.type in BLOCKING_LINK_TYPES

    def ordering_edge(self) -> tuple[int, int] | None:
        """Return (before, after) for blocking links, None otherwise.

        `A blocks B` and `B is_blocked_by A` both mean A comes before B.
        """
        if self.type == "blocks":
            return (self.from_id, self.to_id)
        if self.type == "is_blocked_by":
            return (self.to_id, self.from_id)
        return None

    def touches(self, task_id: int) -> bool:
        return self.from_id == task_id or self.to_id == task_id

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
