"""CLI entry point for task-guardian.

Commands:
    task-guardian init      — create the task store and a starter config
    task-guardian mcp       — start the MCP server (stdio transport)
    task-guardian list      — print tasks, optionally filtered
    task-guardian show      — print one task with its links
    task-guardian migrate   — move legacy inline dependencies into links.json
"""

import json
import sys
from pathlib import Path
from typing import Any

import click

from db.schema import CORE_TASK_FIELDS, TASK_PRIORITIES, TASK_STATUSES, TASK_TYPES
from task_guardian.config import (
    CONFIG_FILENAME,
    ConfigError,
    configure_logging,
    load_config,
)

DEFAULT_CONFIG = {
    "task_dir": ".task",
    "log_level": "WARNING",
}

STATUS_MARKERS = {
    "pending": "[ ]",
    "in_progress": "[~]",
    "completed": "[x]",
    "blocked": "[!]",
    "cancelled": "[-]",
}


def _load_config_or_exit() -> dict[str, Any]:
    try:
        return load_config()
    except ConfigError as e:
        click.echo(f"Config error: {e}", err=True)
        sys.exit(1)


def _open(task_dir: str | None):
    from db.client import StorageError
    from task_guardian.mcp.tools import open_store

    config = _load_config_or_exit()
    configure_logging(config["log_level"])
    try:
        return open_store(task_dir or config["task_dir"])
    except StorageError as e:
        click.echo(f"Storage error: {e}", err=True)
        sys.exit(1)


@click.group()
def main() -> None:
    """task-guardian: task tracking with typed, cycle-checked links."""


@main.command()
def init() -> None:
    """Create a starter task-guardian.config.json and the task store."""
    from db.migrations import init_store

    config_path = Path.cwd() / CONFIG_FILENAME
    if config_path.exists():
        click.echo(f"Config already exists: {config_path}")
    else:
        config_path.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
        click.echo(f"Created {config_path}")

    config = _load_config_or_exit()
    root = init_store(config["task_dir"])
    click.echo(f"Task store ready at {root}")


@main.command()
@click.option("--task-dir", default=None, help="Task store directory (default: .task)")
def mcp(task_dir: str | None) -> None:
    """Start the task-guardian MCP server (stdio transport)."""
    config = _load_config_or_exit()
    configure_logging(config["log_level"])

    from task_guardian.mcp.server import run_server

    run_server(task_dir=task_dir or config["task_dir"])


@main.command("list")
@click.option("--status", type=click.Choice(TASK_STATUSES), default=None)
@click.option("--priority", type=click.Choice(TASK_PRIORITIES), default=None)
@click.option("--type", "task_type", type=click.Choice(TASK_TYPES), default=None)
@click.option("--task-dir", default=None, help="Task store directory")
def list_cmd(
    status: str | None,
    priority: str | None,
    task_type: str | None,
    task_dir: str | None,
) -> None:
    """List tasks in the current project."""
    from task_guardian.mcp.tools import list_tasks

    store = _open(task_dir)
    result = list_tasks(store, status=status, priority=priority, task_type=task_type)
    if "error" in result:
        click.echo(f"Error: {result['message']}", err=True)
        sys.exit(1)

    if not result["tasks"]:
        click.echo("No tasks found.")
        return
    for task in result["tasks"]:
        click.echo(format_task_line(task))
    click.echo(f"\n{result['count']} task(s)")


@main.command()
@click.argument("task_id", type=int)
@click.option("--task-dir", default=None, help="Task store directory")
def show(task_id: int, task_dir: str | None) -> None:
    """Show one task with its metadata and links."""
    from task_guardian.mcp.tools import get_task

    store = _open(task_dir)
    result = get_task(store, task_id)
    if "error" in result:
        click.echo(f"Error: {result['message']}", err=True)
        sys.exit(1)
    click.echo(format_task_detail(result))


@main.command()
@click.option("--task-dir", default=None, help="Task store directory")
def migrate(task_dir: str | None) -> None:
    """Move legacy inline dependencies into links.json."""
    from db.client import StorageError, get_store_dir
    from db.migrations import run_migrations

    config = _load_config_or_exit()
    configure_logging(config["log_level"])
    try:
        counts = run_migrations(get_store_dir(task_dir or config["task_dir"]))
    except StorageError as e:
        click.echo(f"Storage error: {e}", err=True)
        sys.exit(1)
    if counts["tasks"] == 0:
        click.echo("No legacy dependencies found - nothing to migrate")
        return
    click.echo(f"Migrated {counts['tasks']} task(s), created {counts['links']} link(s)")


# ── Rendering ─────────────────────────────────────────────


def format_task_line(task: dict[str, Any]) -> str:
    marker = STATUS_MARKERS.get(task.get("status", ""), "[?]")
    parent = f" (parent #{task['parentId']})" if task.get("parentId") else ""
    return (
        f"{marker} #{task['id']:<4} {task['title']}"
        f"  [{task.get('type', 'task')}, {task.get('priority', 'medium')}]{parent}"
    )


def format_task_detail(task: dict[str, Any]) -> str:
    lines = [
        f"#{task['id']} {task['title']}",
        f"  status:   {task.get('status')}",
        f"  priority: {task.get('priority')}",
        f"  type:     {task.get('type')}",
    ]
    if task.get("parentId"):
        lines.append(f"  parent:   #{task['parentId']}")
    lines.append(f"  created:  {task.get('createdAt')}")
    lines.append(f"  updated:  {task.get('updatedAt')}")

    if task.get("description"):
        lines.extend(["", task["description"]])

    metadata = {
        k: v for k, v in task.items() if k not in CORE_TASK_FIELDS and k != "links"
    }
    if metadata:
        lines.extend(["", "Metadata:"])
        for key, value in metadata.items():
            lines.append(f"  {key}: {json.dumps(value)}")

    links = task.get("links") or {}
    outgoing = links.get("from", [])
    incoming = links.get("to", [])
    if outgoing or incoming:
        lines.extend(["", "Links:"])
        for link in outgoing:
            lines.append(f"  [{link['id']}] this {link['type']} #{link['toId']}")
        for link in incoming:
            lines.append(f"  [{link['id']}] #{link['fromId']} {link['type']} this")
    return "\n".join(lines)
