"""Dependency Orderer - parent-before-child ordering that tolerates cycles.

Orders a batch of hierarchical records (departments, in practice) so that
every record is submitted after the record it names as its parent. Unlike
``HierarchyGraph`` this never rejects input: cycles and references to parents
that are not in the batch are pushed to the end of the ordering instead.

Algorithm (iterative fixed point):
----------------------------------
1. ``resolved`` starts empty, ``pending`` holds every item in input order.
2. Each pass scans ``pending`` from the LAST index to the FIRST. An item is
   satisfiable when it has no parent, or an item carrying that id has already
   been placed in ``resolved`` (including earlier in the same pass).
   Satisfiable items move to ``resolved`` in scan order.
3. A pass that places nothing ends the loop: the remaining pending items are
   appended unchanged, in their current relative order.

Example:
    [C(parent=B), B(parent=A), A]  ->  pass 1 scans A, B, C  ->  [A, B, C]
    [X, Y] (two roots)             ->  pass 1 scans Y, X     ->  [Y, X]

The reverse scan means that, among items placed in the same pass, later input
items come first. Callers that need a stable order for siblings should not
rely on input order being preserved.

Complexity: at most ``len(items)`` passes, O(n^2) overall.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")

IdGetter = Callable[[Any], str | None]

# Key/attribute names probed by the default accessors, in priority order.
# camelCase keys match Directory API payloads, snake_case match the models.
ID_KEYS: tuple[str, ...] = ("externalId", "external_id", "id")
PARENT_KEYS: tuple[str, ...] = ("parentExternalId", "parent_external_id", "parentId", "parent_id")


def _lookup(item: Any, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if isinstance(item, Mapping):
            if key in item:
                return item[key]
        elif hasattr(item, key):
            return getattr(item, key)
    return None


def default_id_of(item: Any) -> str | None:
    """Return the item's identifier as a string, or None if it has none."""
    value = _lookup(item, ID_KEYS)
    return None if value is None else str(value)


def default_parent_of(item: Any) -> str | None:
    """Return the item's parent identifier, treating None and "" as 'no parent'."""
    value = _lookup(item, PARENT_KEYS)
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class OrderingResult(Generic[T]):
    """
    Outcome of a dependency ordering run.

    Attributes:
        ordered: Every input item, parents before children where possible
        unresolved: Items appended in bulk because their parent chain never
            resolved (cycles, missing parents, or descendants of either)
        passes: Number of scan passes performed, including the final pass
            that made no progress (if any)
    """

    ordered: list[T]
    unresolved: list[T] = field(default_factory=list)
    passes: int = 0

    @property
    def has_unresolved(self) -> bool:
        """True when the ordering could not satisfy every parent constraint."""
        return bool(self.unresolved)


class DependencyOrderer:
    """
    Best-effort parent-before-child ordering.

    The orderer keeps no state between calls, so one instance may be shared
    across threads. Items are never copied or modified; the output contains
    the very same objects as the input.
    """

    def __init__(
        self,
        id_of: IdGetter = default_id_of,
        parent_of: IdGetter = default_parent_of,
    ) -> None:
        """
        Initialize the orderer.

        Args:
            id_of: Returns an item's identifier (None if it has none)
            parent_of: Returns the identifier of the item's parent, or None
                for a root item
        """
        self._id_of = id_of
        self._parent_of = parent_of

    def order(self, items: Iterable[T]) -> list[T]:
        """Return ``items`` reordered so parents precede children where possible."""
        return self.order_with_report(items).ordered

    def order_with_report(self, items: Iterable[T]) -> OrderingResult[T]:
        """
        Order ``items`` and report what could not be resolved.

        Args:
            items: Records to order (any iterable; consumed once)

        Returns:
            OrderingResult whose ``ordered`` list is a permutation of the input
        """
        resolved: list[T] = []
        resolved_ids: set[str] = set()
        pending: list[T] = list(items)
        passes = 0

        while pending:
            passes += 1
            placed = 0

            for index in range(len(pending) - 1, -1, -1):
                item = pending[index]
                parent_id = self._parent_of(item)

                if parent_id is None or parent_id in resolved_ids:
                    resolved.append(item)
                    item_id = self._id_of(item)
                    if item_id is not None:
                        resolved_ids.add(item_id)
                    del pending[index]
                    placed += 1

            if placed == 0:
                # No progress: everything left is cyclic or hangs off a missing parent
                unresolved = list(pending)
                resolved.extend(pending)
                return OrderingResult(ordered=resolved, unresolved=unresolved, passes=passes)

        return OrderingResult(ordered=resolved, passes=passes)


def order_by_dependency(
    items: Iterable[T],
    id_of: IdGetter = default_id_of,
    parent_of: IdGetter = default_parent_of,
) -> list[T]:
    """
    Convenience wrapper around ``DependencyOrderer.order``.

    Args:
        items: Records to order
        id_of: Identifier accessor
        parent_of: Parent identifier accessor

    Returns:
        The same records, parents before children where possible
    """
    return DependencyOrderer(id_of=id_of, parent_of=parent_of).order(items)
