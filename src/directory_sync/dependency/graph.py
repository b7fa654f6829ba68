"""Hierarchy Graph - cycle and orphan diagnostics for parent-linked records.

This is the diagnostic counterpart of ``DependencyOrderer``. The orderer
always produces an ordering; the graph answers questions about *why* an
ordering could not satisfy every constraint:

- Is there a cycle reachable from a given node?
- Which cycles exist in the batch?
- Which records point at a parent that is not in the batch?

Each record has at most one parent, so the graph is a "parent map" and every
traversal is a walk up a single chain.
"""

from collections.abc import Iterable

import structlog

from .orderer import IdGetter, default_id_of, default_parent_of

logger = structlog.get_logger(__name__)


class HierarchyGraph:
    """
    Parent map over a batch of records.

    Records without an id are ignored. When ids repeat, the last record wins,
    matching how the batch would be keyed server-side.
    """

    def __init__(self, parents: dict[str, str | None] | None = None) -> None:
        """
        Initialize graph from a child -> parent mapping.

        Args:
            parents: Mapping of node id to parent id (None for roots)
        """
        self.parents: dict[str, str | None] = dict(parents or {})

    @classmethod
    def from_items(
        cls,
        items: Iterable[object],
        id_of: IdGetter = default_id_of,
        parent_of: IdGetter = default_parent_of,
    ) -> "HierarchyGraph":
        """
        Build a graph from records.

        Args:
            items: Records (mappings or objects)
            id_of: Identifier accessor
            parent_of: Parent identifier accessor

        Returns:
            HierarchyGraph instance
        """
        parents: dict[str, str | None] = {}
        for item in items:
            node_id = id_of(item)
            if node_id is None:
                continue
            parents[node_id] = parent_of(item)

        graph = cls(parents)
        logger.debug("Built hierarchy graph", nodes=len(parents))
        return graph

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.parents

    def __len__(self) -> int:
        return len(self.parents)

    def _walk(self, start_id: str) -> tuple[list[str], str | None]:
        """
        Follow parent links from ``start_id``.

        Returns:
            (path, repeated): the visited ids in order, and the first id that
            was seen twice (None if the walk reached a root or a missing parent)
        """
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = start_id

        while current is not None and current in self.parents:
            if current in on_path:
                return path, current
            on_path.add(current)
            path.append(current)
            current = self.parents[current]

        return path, None

    def has_cycle_from(self, node_id: str) -> bool:
        """
        Check whether a cycle is reachable by following parents from ``node_id``.

        The node does not need to be part of the cycle itself: a child of a
        cyclic pair also reports True.

        Args:
            node_id: Node to start from

        Returns:
            True if walking up from the node revisits a node
        """
        _, repeated = self._walk(node_id)
        return repeated is not None

    def cycle_path_from(self, node_id: str) -> list[str] | None:
        """
        Return the walk that closes a loop, e.g. ``["a", "b", "c", "b"]``.

        Args:
            node_id: Node to start from

        Returns:
            Path ending with the repeated id, or None if no cycle is reachable
        """
        path, repeated = self._walk(node_id)
        if repeated is None:
            return None
        return path + [repeated]

    def find_cycles(self) -> list[list[str]]:
        """
        Find every distinct cycle in the graph.

        Each cycle is reported once, rotated to start at its smallest id and
        closed by repeating that id (``["a", "b", "a"]``). Cycles are listed in
        the order they are first reached when walking nodes in insertion order.

        Returns:
            List of cycles
        """
        cycles: list[list[str]] = []
        seen: set[tuple[str, ...]] = set()
        explored: set[str] = set()

        for node_id in self.parents:
            if node_id in explored:
                continue

            path, repeated = self._walk(node_id)
            explored.update(path)
            if repeated is None:
                continue

            loop = path[path.index(repeated) :]
            pivot = loop.index(min(loop))
            rotated = tuple(loop[pivot:] + loop[:pivot])
            if rotated in seen:
                continue

            seen.add(rotated)
            cycles.append(list(rotated) + [rotated[0]])

        if cycles:
            logger.debug("Cycles found in hierarchy", count=len(cycles))
        return cycles

    def dangling_parents(self) -> dict[str, str]:
        """
        Find records whose parent id is not present in the graph.

        Returns:
            Mapping of child id -> missing parent id, in insertion order
        """
        return {
            node_id: parent_id
            for node_id, parent_id in self.parents.items()
            if parent_id is not None and parent_id not in self.parents
        }

    def depth_of(self, node_id: str) -> int:
        """
        Count the resolvable ancestors of ``node_id``.

        Roots (and records whose parent is missing) have depth 0. Walking
        stops when a cycle is detected, so cyclic nodes report the number of
        distinct ancestors seen before the loop closed.

        Args:
            node_id: Node to measure

        Returns:
            Number of ancestors
        """
        path, _ = self._walk(node_id)
        return max(len(path) - 1, 0)

    def children_of(self, node_id: str) -> list[str]:
        """Direct children of ``node_id`` in insertion order."""
        return [child for child, parent in self.parents.items() if parent == node_id]
