"""Link engine: the only entry point for changing the link graph.

Rules:
    - Both endpoints must exist when a link is created
    - Blocking links (`blocks`, `is_blocked_by`) may not close a cycle
    - An identical (from, to, type) link is returned, never duplicated
    - Link ids only grow; a removed id is never handed out again

Reads are permissive: looking up links of an unknown task returns nothing
rather than failing.
"""

import logging
from datetime import datetime, timezone

from db.link_store import LinkStore
from db.schema import LINK_TYPES, Link
from db.task_store import TaskStore
from task_guardian.graph import find_cycle

logger = logging.getLogger(__name__)


class LinkError(Exception):
    """Base class for link engine failures."""


class EndpointNotFoundError(LinkError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class CycleDetectedError(LinkError):
    def __init__(self, path: list[int]) -> None:
        super().__init__(
            "Dependency cycle detected: " + " -> ".join(str(n) for n in path)
        )
        self.path = path


class InvalidLinkTypeError(LinkError):
    def __init__(self, link_type: str) -> None:
        super().__init__(
            f"Invalid link type '{link_type}'. Must be one of: {', '.join(LINK_TYPES)}"
        )
        self.link_type = link_type


class LinkNotFoundError(LinkError):
    def __init__(
        self,
        link_id: int | None = None,
        from_id: int | None = None,
        to_id: int | None = None,
    ) -> None:
        if link_id is not None:
            message = f"Link {link_id} not found"
        else:
            message = f"Link between tasks {from_id} and {to_id} not found"
        super().__init__(message)
        self.link_id = link_id
        self.from_id = from_id
        self.to_id = to_id


class LinkEngine:
    def __init__(self, tasks: TaskStore, links: LinkStore) -> None:
        self.tasks = tasks
        self.links = links

    def create_link(
        self,
        from_id: int,
        to_id: int,
        link_type: str,
        description: str | None = None,
    ) -> Link:
        """Create a typed link from_id -> to_id, or return the identical existing one."""
        if link_type not in LINK_TYPES:
            raise InvalidLinkTypeError(link_type)

        for task_id in (from_id, to_id):
            if not self.tasks.exists(task_id):
                raise EndpointNotFoundError(task_id)

        existing = self.links.find_all()
        path = find_cycle(
            existing, from_id, to_id, link_type, known_ids=set(self.tasks.ids())
        )
        if path is not None:
            raise CycleDetectedError(path)

        for link in existing:
            if link.from_id == from_id and link.to_id == to_id and link.type == link_type:
                return link

        link = Link(
            id=self.links.allocate_next_id(),
            from_id=from_id,
            to_id=to_id,
            type=link_type,
            description=description or None,
            created_at=datetime.now(timezone.utc),
        )
        self.links.append(link)
        logger.info("Created link %d: %d %s %d", link.id, from_id, link_type, to_id)
        return link

    def delete_link(self, link_id: int) -> None:
        removed = self.links.remove(lambda link: link.id == link_id)
        if removed == 0:
            raise LinkNotFoundError(link_id=link_id)
        logger.info("Deleted link %d", link_id)

    def delete_links_between(self, from_id: int, to_id: int) -> int:
        """Remove every link from_id -> to_id regardless of type. Returns the count."""
        removed = self.links.remove(
            lambda link: link.from_id == from_id and link.to_id == to_id
        )
        if removed == 0:
            raise LinkNotFoundError(from_id=from_id, to_id=to_id)
        logger.info("Deleted %d link(s) from %d to %d", removed, from_id, to_id)
        return removed

    def get_links(self, task_id: int) -> dict[str, list[Link]]:
        """Outgoing ("from") and incoming ("to") links of a task."""
        return {
            "from": self.links.find_from(task_id),
            "to": self.links.find_to(task_id),
        }

    def purge_links_for_task(self, task_id: int) -> int:
        """Remove every link touching `task_id`. Never fails on zero matches."""
        removed = self.links.remove(lambda link: link.touches(task_id))
        if removed:
            logger.info("Purged %d link(s) of deleted task %d", removed, task_id)
        return removed

    def blocking(self, task_id: int) -> list[int]:
        """Ids of tasks that `task_id` must complete before."""
        return _ordered_neighbours(self.links.find_all(), task_id, after=True)

    def blocked_by(self, task_id: int) -> list[int]:
        """Ids of tasks that must complete before `task_id`."""
        return _ordered_neighbours(self.links.find_all(), task_id, after=False)


def _ordered_neighbours(links: list[Link], task_id: int, after: bool) -> list[int]:
    result: list[int] = []
    for link in links:
        edge = link.ordering_edge()
        if edge is None:
            continue
        before_id, after_id = edge
        if after and before_id == task_id and after_id not in result:
            result.append(after_id)
        elif not after and after_id == task_id and before_id not in result:
            result.append(before_id)
    return result
