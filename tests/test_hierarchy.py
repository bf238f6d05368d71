"""Tests for db/hierarchy.py — parent/child rules per task type."""

from pathlib import Path

import pytest

from db.hierarchy import (
    ALLOWED_PARENT_TYPES,
    InvalidParentTypeError,
    ParentCycleError,
    ParentNotFoundError,
    SubtaskRequiresParentError,
    get_children,
    validate_children,
    validate_parent,
)
from db.migrations import init_store
from db.task_store import TaskStore


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(init_store(tmp_path / ".task"))


def _make(store: TaskStore, task_type: str, parent_id: int | None = None) -> int:
    fields = {"title": f"A {task_type}", "type": task_type}
    if parent_id is not None:
        fields["parentId"] = parent_id
    return store.create(fields).id


class TestAllowedParents:
    @pytest.mark.parametrize(
        ("child_type", "parent_type"),
        [
            ("user_story", "epic"),
            ("task", "epic"),
            ("task", "user_story"),
            ("bug", "epic"),
            ("bug", "user_story"),
            ("bug", "task"),
            ("sub_task", "user_story"),
            ("sub_task", "task"),
            ("sub_task", "bug"),
        ],
    )
    def test_allowed(self, store: TaskStore, child_type: str, parent_type: str) -> None:
        parent_id = _make(store, parent_type)
        validate_parent(store, child_type, parent_id)

    @pytest.mark.parametrize(
        ("child_type", "parent_type"),
        [
            ("epic", "epic"),
            ("user_story", "task"),
            ("task", "bug"),
            ("task", "sub_task"),
            ("bug", "sub_task"),
            ("sub_task", "epic"),
            ("sub_task", "sub_task"),
        ],
    )
    def test_rejected(self, store: TaskStore, child_type: str, parent_type: str) -> None:
        grandparent = _make(store, "user_story") if parent_type == "sub_task" else None
        parent_id = _make(store, parent_type, grandparent)
        with pytest.raises(InvalidParentTypeError) as exc_info:
            validate_parent(store, child_type, parent_id)
        assert exc_info.value.parent_type == parent_type
        assert exc_info.value.expected_types == list(ALLOWED_PARENT_TYPES[child_type])

    def test_epic_expects_no_parent(self, store: TaskStore) -> None:
        epic = _make(store, "epic")
        with pytest.raises(InvalidParentTypeError) as exc_info:
            validate_parent(store, "epic", epic)
        assert exc_info.value.expected_types == []
        assert "Expected: no parent" in str(exc_info.value)


class TestValidateParent:
    def test_top_level_allowed_except_subtask(self, store: TaskStore) -> None:
        for task_type in ("epic", "user_story", "task", "bug"):
            validate_parent(store, task_type, None)

    def test_subtask_requires_parent(self, store: TaskStore) -> None:
        with pytest.raises(SubtaskRequiresParentError, match="SubTask must have a parent"):
            validate_parent(store, "sub_task", None)

    def test_missing_parent(self, store: TaskStore) -> None:
        with pytest.raises(ParentNotFoundError) as exc_info:
            validate_parent(store, "task", 77)
        assert exc_info.value.parent_id == 77

    def test_own_parent(self, store: TaskStore) -> None:
        task_id = _make(store, "task")
        with pytest.raises(ParentCycleError):
            validate_parent(store, "task", task_id, task_id=task_id)

    def test_descendant_as_parent(self, store: TaskStore) -> None:
        story = _make(store, "user_story")
        task = _make(store, "task", story)
        bug = _make(store, "bug", task)
        # Turning the story into a sub_task of its own grandchild would loop
        with pytest.raises(ParentCycleError):
            validate_parent(store, "sub_task", bug, task_id=story)
        validate_parent(store, "sub_task", bug)

    def test_unknown_type_left_to_record_validation(self, store: TaskStore) -> None:
        validate_parent(store, "chore", 123)


class TestChildren:
    def test_get_children(self, store: TaskStore) -> None:
        epic = _make(store, "epic")
        a = _make(store, "user_story", epic)
        b = _make(store, "task", epic)
        _make(store, "task")
        assert [t.id for t in get_children(store, epic)] == [a, b]
        assert get_children(store, a) == []

    def test_type_change_checked_against_children(self, store: TaskStore) -> None:
        story = _make(store, "user_story")
        sub = _make(store, "sub_task", story)
        validate_children(store, story, "task")
        with pytest.raises(InvalidParentTypeError) as exc_info:
            validate_children(store, story, "epic")
        assert exc_info.value.task_id == sub
