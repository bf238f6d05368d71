"""Cycle detection over blocking links.

Blocking links are normalised to ordering edges before -> after:
`A blocks B` gives A -> B and `A is_blocked_by B` gives B -> A. Adding
before -> after closes a cycle iff `before` is already reachable from
`after` along ordering edges. Non-blocking links never take part.
"""

from collections import defaultdict
from collections.abc import Container, Iterable

from db.schema import Link


def blocking_adjacency(links: Iterable[Link]) -> dict[int, list[int]]:
    """Map each task id to the ids it must precede, in link order."""
    adjacency: dict[int, list[int]] = defaultdict(list)
    for link in links:
        edge = link.ordering_edge()
        if edge is not None:
            adjacency[edge[0]].append(edge[1])
    return adjacency


def find_path(
    adjacency: dict[int, list[int]],
    start: int,
    target: int,
    known_ids: Container[int] | None = None,
) -> list[int] | None:
    """Depth-first search from `start` to `target`.

    Returns the node sequence start..target, or None if unreachable.
    Each node is expanded at most once, so graphs that already contain a
    cycle still terminate. Nodes missing from `known_ids` are dead ends.
    Not guaranteed to be the shortest path.
    """
    if start == target:
        return [start]

    visited = {start}
    path = [start]
    stack = [iter(adjacency.get(start, ()))]
    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            path.pop()
            continue
        if node == target:
            return path + [node]
        if node in visited:
            continue
        visited.add(node)
        if known_ids is not None and node not in known_ids:
            continue
        path.append(node)
        stack.append(iter(adjacency.get(node, ())))
    return None


def find_cycle(
    links: Iterable[Link],
    from_id: int,
    to_id: int,
    link_type: str,
    known_ids: Container[int] | None = None,
) -> list[int] | None:
    """Return the cycle a proposed link would close, or None.

    The path starts and ends at the proposed edge's `before` node, e.g.
    proposing 3 blocks 1 over 1 -> 2 -> 3 gives [3, 1, 2, 3]. A self-loop
    gives [n, n].
    """
    if link_type == "blocks":
        before, after = from_id, to_id
    elif link_type == "is_blocked_by":
        before, after = to_id, from_id
    else:
        return None

    path = find_path(blocking_adjacency(links), after, before, known_ids)
    if path is None:
        return None
    return [before] + path
