"""File store helpers for task-guardian.

Every document is read whole and rewritten whole. Writes go to a temp file
in the same directory and are moved into place with os.replace().
"""

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any


class StorageError(Exception):
    """Raised when reading or writing a store document fails."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"Storage failure during {operation}: {cause}")
        self.operation = operation
        self.cause = cause


def get_store_dir(task_dir: str | Path) -> Path:
    """Return the store directory, creating it if needed."""
    path = Path(task_dir).expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError("get_store_dir", e) from e
    return path


def read_json(path: Path, operation: str) -> Any:
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(operation, e) from e


def write_json(path: Path, data: Any, operation: str) -> None:
    """Atomically replace `path` with the JSON rendering of `data`."""
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise StorageError(operation, e) from e

    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except OSError as e:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise StorageError(operation, e) from e


class IdCounter:
    """Monotonic id counter persisted under `key` in a JSON document.

    Other keys in the document are preserved. The new value is written
    before it is returned, so sequential calls never hand out the same id.
    """

    def __init__(self, path: Path, key: str = "lastId") -> None:
        self.path = path
        self.key = key

    def next(self) -> int:
        doc = read_json(self.path, "allocate_id")
        next_id = int(doc.get(self.key, 0)) + 1
        doc[self.key] = next_id
        write_json(self.path, doc, "allocate_id")
        return next_id
