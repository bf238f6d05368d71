"""Link (edge) store: a single JSON document holding every link.

Document shape: {"lastId": <int>, "edges": [<link record>, ...]}.
Every mutation rewrites the whole document. Queries return links in
insertion order.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from db.client import IdCounter, StorageError, read_json, write_json
from db.schema import INITIAL_DOCUMENTS, LINKS_FILE, Link


class LinkStore:
    def __init__(self, root: Path) -> None:
        self.path = root / LINKS_FILE
        self.counter = IdCounter(self.path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return dict(INITIAL_DOCUMENTS[LINKS_FILE], edges=[])
        doc = read_json(self.path, "read_links")
        doc.setdefault("lastId", 0)
        doc.setdefault("edges", [])
        return doc

    def _load(self) -> tuple[dict[str, Any], list[Link]]:
        doc = self._read()
        try:
            links = [Link.model_validate(e) for e in doc["edges"]]
        except ValidationError as e:
            raise StorageError("read_links", e) from e
        return doc, links

    def _save(self, doc: dict[str, Any], links: list[Link], operation: str) -> None:
        doc["edges"] = [link.to_record() for link in links]
        write_json(self.path, doc, operation)

    @property
    def last_id(self) -> int:
        return int(self._read()["lastId"])

    def allocate_next_id(self) -> int:
        """Return lastId + 1, persisted before returning."""
        if not self.path.exists():
            write_json(self.path, self._read(), "allocate_link_id")
        return self.counter.next()

    def append(self, link: Link) -> None:
        doc, links = self._load()
        links.append(link)
        # Keep lastId ahead of any id written, even one not handed out here
        doc["lastId"] = max(int(doc["lastId"]), link.id)
        self._save(doc, links, "append_link")

    def remove(self, predicate: Callable[[Link], bool]) -> int:
        """Remove every link matching `predicate`. Returns the number removed."""
        doc, links = self._load()
        kept = [link for link in links if not predicate(link)]
        removed = len(links) - len(kept)
        if removed:
            self._save(doc, kept, "remove_links")
        return removed

    def find_all(self) -> list[Link]:
        return self._load()[1]

    def find_from(self, task_id: int) -> list[Link]:
        return [link for link in self.find_all() if link.from_id == task_id]

    def find_to(self, task_id: int) -> list[Link]:
        return [link for link in self.find_all() if link.to_id == task_id]

    def find_between(self, from_id: int, to_id: int) -> list[Link]:
        return [
            link
            for link in self.find_all()
            if link.from_id == from_id and link.to_id == to_id
        ]
