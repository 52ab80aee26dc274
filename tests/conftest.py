"""Shared fixtures: a fresh registry, a no-delay runner config and small graphs."""

import pytest

from flowforge.config import ExecutionConfig
from flowforge.graph.edge import EdgeSpec
from flowforge.graph.node import NodeInstance
from flowforge.graph.registry import NodeTypeRegistry
from flowforge.graph.store import GraphStore
from flowforge.graph.workflow import WorkflowGraph


@pytest.fixture
def registry() -> NodeTypeRegistry:
    return NodeTypeRegistry()


@pytest.fixture
def fast_config() -> ExecutionConfig:
    """Runner config with no wall-clock delays."""
    return ExecutionConfig(
        tick_interval=0,
        progress_step=20,
        require_end_node=True,
        step_durations={},
        default_step_duration=0,
    )


def make_graph(
    steps: list[tuple[str, str, dict]],
    with_end: bool = True,
    workflow_id: str = "workflow-test",
) -> WorkflowGraph:
    """
    Linear graph start -> steps... -> end.

    ``steps`` is a list of ``(node_id, node_type, config)``.
    """
    nodes = [NodeInstance(id="start-1", type="start", label="Start")]
    nodes += [
        NodeInstance(id=node_id, type=node_type, label=node_id, config=config)
        for node_id, node_type, config in steps
    ]
    chain = ["start-1"] + [node_id for node_id, _, _ in steps]
    if with_end:
        nodes.append(NodeInstance(id="end-1", type="end", label="End"))
        chain.append("end-1")

    edges = [
        EdgeSpec(id=f"{source}-{target}", source=source, target=target)
        for source, target in zip(chain, chain[1:], strict=False)
    ]
    return WorkflowGraph(id=workflow_id, name="Test workflow", nodes=nodes, edges=edges)


@pytest.fixture
def pipeline_store(registry) -> GraphStore:
    """start -> A(dataSource) -> B(filter) -> end, both steps configured."""
    graph = make_graph(
        [
            ("A", "dataSource", {"sourceType": "netsuite"}),
            ("B", "filter", {"filterConditions": '{"sku": "*"}'}),
        ]
    )
    return GraphStore(graph, registry)
