"""MCP server for task-guardian.

Exposes task and link tools via stdio transport.
Launched by `task-guardian mcp [--task-dir <path>]`.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import Context, FastMCP

from db.schema import LinkType, TaskPriority, TaskStatus, TaskType
from task_guardian.config import ENV_TASK_DIR
from task_guardian.mcp import tools
from task_guardian.models import TaskInput, TaskQueryFilters, TaskSort, TaskUpdateInput

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Lifespan state accessible by tools via Context."""

    store: tools.Store


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppState]:  # type: ignore[type-arg]
    """Open the task store at startup."""
    task_dir = os.environ.get(ENV_TASK_DIR, ".task")
    store = tools.open_store(task_dir)
    logger.info("Serving task store at %s", store.tasks.root)
    yield AppState(store=store)


def _get_store(ctx: Context) -> tools.Store:
    """Extract the store from Context lifespan state."""
    state: AppState = ctx.request_context.lifespan_context
    return state.store


def _dump(result: dict[str, Any]) -> str:
    return json.dumps(result, indent=2)


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools registered."""
    server = FastMCP(
        name="task-guardian",
        instructions="Task tracking with typed, cycle-checked links between tasks.",
        lifespan=app_lifespan,
    )

    @server.tool(
        description="Create a new task with title, description, and optional metadata"
    )
    def create_task(
        title: str,
        description: str = "",
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        task_type: TaskType | None = None,
        parent_id: int | None = None,
        metadata: dict[str, Any] | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        result = tools.create_task(
            store, title, description, status, priority, task_type, parent_id, metadata
        )
        return _dump(result)

    @server.tool(description="Create several tasks; failures are reported per index")
    def create_tasks(
        tasks: list[TaskInput],
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        return _dump(tools.create_tasks(store, tasks))

    @server.tool(description="Retrieve a task by its ID, including its links")
    def get_task(task_id: int, ctx: Context = None) -> str:  # type: ignore[assignment]
        store = _get_store(ctx)
        return _dump(tools.get_task(store, task_id))

    @server.tool(
        description="Update an existing task with new values. Omitted fields are unchanged; parent_id=0 removes the parent."
    )
    def update_task(
        task_id: int,
        title: str | None = None,
        description: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        task_type: TaskType | None = None,
        parent_id: int | None = None,
        metadata: dict[str, Any] | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        result = tools.update_task(
            store,
            task_id,
            title,
            description,
            status,
            priority,
            task_type,
            parent_id,
            metadata,
        )
        return _dump(result)

    @server.tool(description="Update several tasks; failures are reported per task")
    def update_tasks(
        updates: list[TaskUpdateInput],
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        return _dump(tools.update_tasks(store, updates))

    @server.tool(
        description="Delete a task and its links (force=true ignores blocked tasks and detaches children, but sub_task children still block deletion)"
    )
    def delete_task(
        task_id: int,
        force: bool = False,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        return _dump(tools.delete_task(store, task_id, force))

    @server.tool(
        description="List tasks with optional filtering by status, priority, type, or parent"
    )
    def list_tasks(
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        task_type: TaskType | None = None,
        parent_id: int | None = None,
        limit: int | None = None,
        offset: int | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        result = tools.list_tasks(
            store, status, priority, task_type, parent_id, limit, offset
        )
        return _dump(result)

    @server.tool(
        description="Query tasks with multi-value filters, text search, sorting and pagination"
    )
    def query_tasks(
        filters: TaskQueryFilters | None = None,
        sort: TaskSort | None = None,
        limit: int | None = None,
        offset: int | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        return _dump(tools.query_tasks(store, filters, sort, limit, offset))

    @server.tool(
        description="Link two tasks (blocks, is_blocked_by, relates_to, duplicates, is_duplicated_by). Blocking links that would form a cycle are rejected; an identical existing link is returned as-is."
    )
    def link_tasks(
        from_task_id: int,
        to_task_id: int,
        link_type: LinkType,
        description: str | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        result = tools.link_tasks(store, from_task_id, to_task_id, link_type, description)
        return _dump(result)

    @server.tool(
        description="Remove a link by link_id, or all links from from_task_id to to_task_id"
    )
    def unlink_tasks(
        link_id: int | None = None,
        from_task_id: int | None = None,
        to_task_id: int | None = None,
        ctx: Context = None,  # type: ignore[assignment]
    ) -> str:
        store = _get_store(ctx)
        return _dump(tools.unlink_tasks(store, link_id, from_task_id, to_task_id))

    @server.tool(description="Get outgoing (from) and incoming (to) links for a task")
    def get_links(task_id: int, ctx: Context = None) -> str:  # type: ignore[assignment]
        store = _get_store(ctx)
        return _dump(tools.get_links(store, task_id))

    return server


def run_server(task_dir: str | None = None) -> None:
    """Entry point: create server and run on stdio."""
    if task_dir:
        os.environ[ENV_TASK_DIR] = task_dir

    server = create_server()
    server.run(transport="stdio")
