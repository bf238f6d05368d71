"""Tests for the task-guardian CLI commands."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from db.client import read_json, write_json
from task_guardian.cli import format_task_detail, format_task_line, main
from task_guardian.mcp.tools import create_task, link_tasks, open_store


@pytest.fixture()
def task_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TASK_GUARDIAN_DIR", raising=False)
    return tmp_path / ".task"


class TestInit:
    def test_creates_config_and_store(self, task_dir: Path) -> None:
        result = CliRunner().invoke(main, ["init"])
        assert result.exit_code == 0
        assert (task_dir.parent / "task-guardian.config.json").exists()
        assert read_json(task_dir / ".meta.json", "t") == {"lastId": 0}

    def test_keeps_existing_config(self, task_dir: Path) -> None:
        config = task_dir.parent / "task-guardian.config.json"
        config.write_text('{"task_dir": "custom"}')
        result = CliRunner().invoke(main, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert config.read_text() == '{"task_dir": "custom"}'
        assert (task_dir.parent / "custom" / "links.json").exists()

    def test_bad_config_exits(self, task_dir: Path) -> None:
        (task_dir.parent / "task-guardian.config.json").write_text("[1]")
        result = CliRunner().invoke(main, ["list"])
        assert result.exit_code == 1


class TestListAndShow:
    def test_list_empty(self, task_dir: Path) -> None:
        result = CliRunner().invoke(main, ["list"])
        assert result.exit_code == 0
        assert "No tasks found." in result.output

    def test_list_filtered(self, task_dir: Path) -> None:
        store = open_store(task_dir)
        create_task(store, "Ship it", priority="high")
        create_task(store, "Later", priority="low")

        result = CliRunner().invoke(main, ["list", "--priority", "high"])
        assert result.exit_code == 0
        assert "Ship it" in result.output
        assert "Later" not in result.output
        assert "1 task(s)" in result.output

    def test_show_with_links(self, task_dir: Path) -> None:
        store = open_store(task_dir)
        create_task(store, "API", metadata={"owner": "kim"})
        create_task(store, "UI")
        link_tasks(store, 1, 2, "blocks")

        result = CliRunner().invoke(main, ["show", "1", "--task-dir", str(task_dir)])
        assert result.exit_code == 0
        assert "#1 API" in result.output
        assert 'owner: "kim"' in result.output
        assert "[1] this blocks #2" in result.output

    def test_show_missing(self, task_dir: Path) -> None:
        result = CliRunner().invoke(main, ["show", "4"])
        assert result.exit_code == 1


class TestMigrate:
    def test_nothing_to_migrate(self, task_dir: Path) -> None:
        result = CliRunner().invoke(main, ["migrate"])
        assert result.exit_code == 0
        assert "nothing to migrate" in result.output

    def test_migrates_inline_dependencies(self, task_dir: Path) -> None:
        open_store(task_dir)
        write_json(
            task_dir / "task-1.json",
            {
                "id": 1,
                "title": "Old",
                "dependencies": [{"taskId": 2, "type": "requires"}],
                "createdAt": "2025-01-01T00:00:00+00:00",
                "updatedAt": "2025-01-01T00:00:00+00:00",
            },
            "t",
        )
        result = CliRunner().invoke(main, ["migrate"])
        assert result.exit_code == 0
        assert "Migrated 1 task(s), created 1 link(s)" in result.output

    @pytest.mark.parametrize("command", [["migrate"], ["list"]])
    def test_malformed_dependencies_exit(self, task_dir: Path, command: list[str]) -> None:
        open_store(task_dir)
        write_json(
            task_dir / "task-1.json",
            {
                "id": 1,
                "title": "Old",
                "dependencies": "see wiki",
                "createdAt": "2025-01-01T00:00:00+00:00",
                "updatedAt": "2025-01-01T00:00:00+00:00",
            },
            "t",
        )
        result = CliRunner().invoke(main, command)
        assert result.exit_code == 1
        assert "Storage error" in result.output
        assert read_json(task_dir / "task-1.json", "t")["dependencies"] == "see wiki"


class TestFormatting:
    def test_task_line(self) -> None:
        line = format_task_line(
            {"id": 3, "title": "Fix", "status": "in_progress", "type": "bug",
             "priority": "high", "parentId": 1}
        )
        assert line.startswith("[~] #3")
        assert "[bug, high] (parent #1)" in line

    def test_detail_incoming_link(self) -> None:
        detail = format_task_detail(
            {
                "id": 2,
                "title": "UI",
                "status": "pending",
                "links": {"from": [], "to": [{"id": 4, "fromId": 1, "toId": 2, "type": "blocks"}]},
            }
        )
        assert "[4] #1 blocks this" in detail
        assert "Metadata" not in detail
