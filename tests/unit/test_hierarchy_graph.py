"""Tests for the HierarchyGraph diagnostics."""

import pytest

from src.directory_sync.dependency.graph import HierarchyGraph


class TestHierarchyGraph:
    """Test suite for HierarchyGraph."""

    @pytest.fixture
    def tree(self):
        return HierarchyGraph({"root": None, "a": "root", "b": "a", "c": "a"})

    def test_from_items(self, departments):
        graph = HierarchyGraph.from_items(departments)

        assert len(graph) == 3
        assert "team" in graph
        assert graph.parents["team"] == "division"
        assert graph.parents["root"] is None

    def test_from_items_skips_records_without_id(self):
        graph = HierarchyGraph.from_items([{"departmentName": "nameless"}, {"externalId": "a"}])
        assert list(graph.parents) == ["a"]

    def test_from_items_last_duplicate_wins(self):
        graph = HierarchyGraph.from_items(
            [{"externalId": "a", "parentExternalId": "x"}, {"externalId": "a"}]
        )
        assert graph.parents == {"a": None}

    def test_tree_has_no_cycles(self, tree):
        assert tree.find_cycles() == []
        assert not tree.has_cycle_from("b")
        assert tree.cycle_path_from("b") is None

    def test_depth(self, tree):
        assert tree.depth_of("root") == 0
        assert tree.depth_of("a") == 1
        assert tree.depth_of("b") == 2

    def test_children_of(self, tree):
        assert tree.children_of("a") == ["b", "c"]
        assert tree.children_of("b") == []

    def test_two_node_cycle(self):
        graph = HierarchyGraph({"b": "a", "a": "b"})

        assert graph.find_cycles() == [["a", "b", "a"]]
        assert graph.has_cycle_from("a")

    def test_cycle_reachable_from_descendant(self):
        graph = HierarchyGraph({"x": "b", "a": "c", "b": "a", "c": "b"})

        assert graph.has_cycle_from("x")
        assert graph.cycle_path_from("x") == ["x", "b", "a", "c", "b"]

    def test_self_loop(self):
        graph = HierarchyGraph({"a": "a"})
        assert graph.find_cycles() == [["a", "a"]]

    def test_cycles_reported_once(self):
        graph = HierarchyGraph({"c": "a", "a": "b", "b": "c", "x": "y", "y": "x"})

        cycles = graph.find_cycles()

        assert cycles == [["a", "b", "c", "a"], ["x", "y", "x"]]

    def test_dangling_parents(self):
        graph = HierarchyGraph({"a": None, "b": "missing", "c": "a"})
        assert graph.dangling_parents() == {"b": "missing"}

    def test_missing_parent_depth_is_zero(self):
        graph = HierarchyGraph({"b": "missing"})
        assert graph.depth_of("b") == 0

    def test_unknown_node(self, tree):
        assert not tree.has_cycle_from("nope")
        assert tree.depth_of("nope") == 0
