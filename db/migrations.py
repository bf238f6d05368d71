"""Store initialisation and migration logic for task-guardian.

Initialisation is idempotent: directories and documents are only created
when missing, so running it repeatedly has no effect.

Can be run directly:
    python -m db.migrations [task_dir]
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from db.client import StorageError, get_store_dir, read_json, write_json
from db.schema import (
    ARCHIVE_DIR,
    BACKUP_DIR,
    INITIAL_DOCUMENTS,
    LEGACY_DEPENDENCIES_KEY,
    LINKS_FILE,
    TASK_FILE_GLOB,
)

logger = logging.getLogger(__name__)

# Legacy inline dependency type -> link type
LEGACY_DEPENDENCY_TYPES = {
    "blocks": "blocks",
    "requires": "blocks",
    "related-to": "relates_to",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def run_migrations(root: Path) -> dict[str, int]:
    """Create missing directories and documents, then migrate legacy records.

    Returns the counts from migrate_inline_dependencies().
    """
    (root / ARCHIVE_DIR).mkdir(exist_ok=True)
    for filename, initial in INITIAL_DOCUMENTS.items():
        path = root / filename
        if not path.exists():
            write_json(path, initial, "init_store")

    return migrate_inline_dependencies(root)


def _is_task_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _check_legacy_record(path: Path, record: dict[str, Any]) -> None:
    """Raise StorageError unless `record` holds a well-formed dependency list.

    A legacy record has an integer `id` and a list of `{taskId, type?,
    description?}` objects with an integer `taskId`.
    """
    deps = record[LEGACY_DEPENDENCIES_KEY]
    problem = None
    if not _is_task_id(record.get("id")):
        problem = "record has no integer id"
    elif not isinstance(deps, list):
        problem = f"'{LEGACY_DEPENDENCIES_KEY}' is not a list"
    else:
        for dep in deps:
            if not isinstance(dep, dict) or not _is_task_id(dep.get("taskId")):
                problem = f"dependency without an integer taskId: {dep!r}"
                break
            if not isinstance(dep.get("type", ""), str):
                problem = f"dependency with a non-string type: {dep!r}"
                break
    if problem is not None:
        raise StorageError(
            "migrate_read_task", ValueError(f"{path.name}: {problem}")
        )


def migrate_inline_dependencies(root: Path) -> dict[str, int]:
    """Move legacy `dependencies` arrays out of task records into links.json.

    Each dependency `{taskId, type, description?}` on task N becomes a link
    N -> taskId. The original record is copied to backup-v1/ before the
    field is stripped. Tasks without the field are left untouched. A
    malformed field raises StorageError before anything is written.

    Returns counts of migrated tasks and created links.
    """
    legacy: list[tuple[Path, dict[str, Any]]] = []
    for path in sorted(root.glob(TASK_FILE_GLOB)):
        record = read_json(path, "migrate_read_task")
        if isinstance(record, dict) and LEGACY_DEPENDENCIES_KEY in record:
            _check_legacy_record(path, record)
            legacy.append((path, record))

    if not legacy:
        return {"tasks": 0, "links": 0}

    backup_dir = root / BACKUP_DIR
    backup_dir.mkdir(exist_ok=True)

    links_path = root / LINKS_FILE
    links_doc = read_json(links_path, "migrate_read_links")
    edges: list[dict[str, Any]] = links_doc.setdefault("edges", [])
    last_id = int(links_doc.get("lastId", 0))
    existing = {(e["fromId"], e["toId"], e["type"]) for e in edges}

    created = 0
    for path, record in legacy:
        write_json(backup_dir / path.name, record, "migrate_backup")

        for dep in record[LEGACY_DEPENDENCIES_KEY]:
            link_type = LEGACY_DEPENDENCY_TYPES.get(dep.get("type"), "relates_to")
            key = (record["id"], dep["taskId"], link_type)
            if key in existing:
                continue
            existing.add(key)
            last_id += 1
            edge: dict[str, Any] = {
                "id": last_id,
                "fromId": record["id"],
                "toId": dep["taskId"],
                "type": link_type,
            }
            if dep.get("description"):
                edge["description"] = dep["description"]
            edge["createdAt"] = record.get("updatedAt") or _now()
            edges.append(edge)
            created += 1

    links_doc["lastId"] = last_id
    write_json(links_path, links_doc, "migrate_write_links")

    # Strip the field only after links.json holds the converted edges
    for path, record in legacy:
        stripped = {k: v for k, v in record.items() if k != LEGACY_DEPENDENCIES_KEY}
        write_json(path, stripped, "migrate_write_task")

    logger.info(
        "Migrated %d task(s), created %d link(s); backup in %s",
        len(legacy),
        created,
        backup_dir,
    )
    return {"tasks": len(legacy), "links": created}


def init_store(task_dir: str | Path) -> Path:
    """Ensure the store directory exists, run migrations, and return its path."""
    root = get_store_dir(task_dir)
    run_migrations(root)
    return root


def main() -> None:
    """CLI entry point for running migrations directly."""
    if len(sys.argv) > 1:
        task_dir = sys.argv[1]
    else:
        task_dir = ".task"

    print(f"Running migrations on {task_dir}...")
    root = init_store(task_dir)

    tasks = sorted(p.name for p in root.glob(TASK_FILE_GLOB))
    print(f"Task records: {len(tasks)}")
    links = read_json(root / LINKS_FILE, "read_links")
    print(f"Links: {len(links.get('edges', []))} (lastId={links.get('lastId', 0)})")
    print("Done.")


if __name__ == "__main__":
    main()
