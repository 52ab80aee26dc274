"""Tests for RunOrderPlanner."""

import pytest

from flowforge.errors import NoStartNodeError
from flowforge.graph.edge import EdgeSpec
from flowforge.graph.node import NodeInstance
from flowforge.graph.planner import RunOrderPlanner
from flowforge.graph.workflow import WorkflowGraph

from .conftest import make_graph


def branching_graph() -> WorkflowGraph:
    """
    start -> cond --true--> A -> end
                  --false-> B -> C -> end
    """
    nodes = [
        NodeInstance(id="start-1", type="start"),
        NodeInstance(id="cond", type="conditional"),
        NodeInstance(id="A", type="process"),
        NodeInstance(id="B", type="filter"),
        NodeInstance(id="C", type="ai"),
        NodeInstance(id="end-1", type="end"),
    ]
    edges = [
        EdgeSpec(id="e1", source="start-1", target="cond"),
        EdgeSpec(id="e2", source="cond", target="A", source_handle="true"),
        EdgeSpec(id="e3", source="cond", target="B", source_handle="false"),
        EdgeSpec(id="e4", source="A", target="end-1"),
        EdgeSpec(id="e5", source="B", target="C"),
        EdgeSpec(id="e6", source="C", target="end-1"),
    ]
    return WorkflowGraph(id="w", nodes=nodes, edges=edges)


class TestRunOrderPlanner:
    def test_linear_order_excludes_start_includes_end(self):
        graph = make_graph([("A", "dataSource", {}), ("B", "filter", {})])
        assert RunOrderPlanner().plan(graph) == ["A", "B", "end-1"]

    def test_depth_first_in_edge_insertion_order(self):
        # end is reached through the first branch and visited only once
        assert RunOrderPlanner().plan(branching_graph()) == ["cond", "A", "end-1", "B", "C"]

    def test_insertion_order_decides_branches(self):
        graph = branching_graph()
        graph.edges = [graph.edges[0], graph.edges[2], graph.edges[1], *graph.edges[3:]]
        assert RunOrderPlanner().plan(graph) == ["cond", "B", "C", "end-1", "A"]

    def test_deterministic(self):
        graph = branching_graph()
        planner = RunOrderPlanner()
        assert planner.plan(graph) == planner.plan(graph)

    def test_does_not_mutate_graph(self):
        graph = branching_graph()
        before = graph.model_dump()
        RunOrderPlanner().plan(graph)
        assert graph.model_dump() == before

    def test_cycle_visits_each_node_once(self):
        graph = make_graph([("A", "process", {}), ("B", "process", {})])
        graph.edges.append(EdgeSpec(id="B-A", source="B", target="A"))
        assert RunOrderPlanner().plan(graph) == ["A", "B", "end-1"]

    def test_unreachable_nodes_are_not_planned(self):
        graph = make_graph([("A", "process", {})])
        graph.nodes.append(NodeInstance(id="island", type="ai"))
        assert "island" not in RunOrderPlanner().plan(graph)

    def test_start_only(self):
        graph = WorkflowGraph(id="w", nodes=[NodeInstance(id="start-1", type="start")])
        assert RunOrderPlanner().plan(graph) == []

    def test_no_start_raises(self):
        graph = WorkflowGraph(id="w", nodes=[NodeInstance(id="A", type="process")])
        with pytest.raises(NoStartNodeError, match="must have a start node"):
            RunOrderPlanner().plan(graph)
