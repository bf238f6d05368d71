"""Tests for task_guardian/graph.py — blocking cycle detection."""

from db.schema import Link
from task_guardian.graph import blocking_adjacency, find_cycle, find_path


def _links(*edges: tuple[int, int, str]) -> list[Link]:
    return [
        Link(
            id=i,
            from_id=from_id,
            to_id=to_id,
            type=link_type,
            created_at="2025-01-01T00:00:00+00:00",
        )
        for i, (from_id, to_id, link_type) in enumerate(edges, start=1)
    ]


class TestBlockingAdjacency:
    def test_normalises_inverse_type(self) -> None:
        adjacency = blocking_adjacency(
            _links((1, 2, "blocks"), (3, 4, "is_blocked_by"), (5, 6, "relates_to"))
        )
        assert dict(adjacency) == {1: [2], 4: [3]}


class TestFindPath:
    def test_start_equals_target(self) -> None:
        assert find_path({}, 5, 5) == [5]

    def test_unreachable(self) -> None:
        assert find_path({1: [2]}, 2, 1) is None

    def test_follows_branches(self) -> None:
        adjacency = {1: [2, 3], 2: [], 3: [4]}
        assert find_path(adjacency, 1, 4) == [1, 3, 4]

    def test_terminates_on_existing_cycle(self) -> None:
        adjacency = {1: [2], 2: [3], 3: [1]}
        assert find_path(adjacency, 1, 9) is None

    def test_unknown_node_is_dead_end(self) -> None:
        adjacency = {1: [2], 2: [3]}
        assert find_path(adjacency, 1, 3, known_ids={1, 3}) is None
        assert find_path(adjacency, 1, 3, known_ids={1, 2, 3}) == [1, 2, 3]


class TestFindCycle:
    def test_self_loop(self) -> None:
        assert find_cycle([], 5, 5, "blocks") == [5, 5]

    def test_direct_cycle(self) -> None:
        path = find_cycle(_links((1, 2, "blocks")), 2, 1, "blocks")
        assert path == [2, 1, 2]

    def test_transitive_cycle(self) -> None:
        links = _links((1, 2, "blocks"), (2, 3, "blocks"))
        assert find_cycle(links, 3, 1, "blocks") == [3, 1, 2, 3]

    def test_no_cycle(self) -> None:
        links = _links((1, 2, "blocks"), (2, 3, "blocks"))
        assert find_cycle(links, 1, 3, "blocks") is None

    def test_non_blocking_types_never_cycle(self) -> None:
        links = _links((1, 2, "blocks"))
        for link_type in ("relates_to", "duplicates", "is_duplicated_by"):
            assert find_cycle(links, 2, 1, link_type) is None
            assert find_cycle(links, 3, 3, link_type) is None

    def test_non_blocking_links_not_traversed(self) -> None:
        links = _links((1, 2, "relates_to"))
        assert find_cycle(links, 2, 1, "blocks") is None

    def test_mixed_blocking_types(self) -> None:
        # 2 is_blocked_by 1 means 1 comes before 2, so 2 blocks 1 closes a loop
        links = _links((2, 1, "is_blocked_by"))
        assert find_cycle(links, 2, 1, "blocks") == [2, 1, 2]

    def test_inverse_proposal(self) -> None:
        # 1 blocks 2; proposing 1 is_blocked_by 2 reverses the order
        links = _links((1, 2, "blocks"))
        assert find_cycle(links, 1, 2, "is_blocked_by") == [2, 1, 2]
        assert find_cycle(links, 2, 1, "is_blocked_by") is None
