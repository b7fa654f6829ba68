"""Dependency management for hierarchical batch ordering."""

from .graph import HierarchyGraph
from .orderer import DependencyOrderer, OrderingResult, order_by_dependency

__all__ = [
    "DependencyOrderer",
    "HierarchyGraph",
    "OrderingResult",
    "order_by_dependency",
]
