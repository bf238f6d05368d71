"""Pydantic input models for the task-guardian MCP tools."""

from typing import Any, Literal

from pydantic import BaseModel

from db.schema import TaskPriority, TaskStatus, TaskType


class TaskQueryFilters(BaseModel):
    status: list[TaskStatus] | None = None
    priority: list[TaskPriority] | None = None
    type: list[TaskType] | None = None
    parent_id: int | None = None
    has_dependencies: bool | None = None
    title_contains: str | None = None
    description_contains: str | None = None


class TaskSort(BaseModel):
    field: Literal["createdAt", "updatedAt", "priority", "title"]
    order: Literal["asc", "desc"] = "asc"


class TaskInput(BaseModel):
    """One entry of a create_tasks batch."""

    title: str
    description: str = ""
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    parent_id: int | None = None
    metadata: dict[str, Any] | None = None


class TaskUpdateInput(BaseModel):
    """One entry of an update_tasks batch."""

    task_id: int
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    # 0 removes the parent
    parent_id: int | None = None
    metadata: dict[str, Any] | None = None
