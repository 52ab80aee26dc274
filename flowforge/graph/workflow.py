"""
Workflow Graph - the node set and edge set plus derived state.

A WorkflowGraph is a plain value. The GraphStore owns the live instance and
hands out deep copies (snapshots); the planner and validators only ever read
snapshots passed to them explicitly.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from flowforge.graph.edge import EdgeSpec
from flowforge.graph.node import END_NODE_TYPE, START_NODE_TYPE, NodeInstance


class WorkflowStatus(StrEnum):
    """Lifecycle status of a whole workflow."""

    DRAFT = "draft"  # Editable, not running
    RUNNING = "running"
    COMPLETED = "completed"  # Last run finished every step
    ERROR = "error"  # Last run hit an execution fault


class WorkflowGraph(BaseModel):
    """
    Complete workflow: nodes, edges and bookkeeping.

    Example:
        WorkflowGraph(
            id="workflow-1a2b3c4d",
            name="Inventory sync",
            nodes=[NodeInstance(id="start-1", type="start", label="Start"), ...],
            edges=[EdgeSpec(id="start-1-end-1", source="start-1", target="end-1")],
        )
    """

    id: str
    name: str = "Untitled Workflow"
    description: str = ""

    nodes: list[NodeInstance] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    version: int = Field(default=1, ge=1, description="Incremented on every mutation")
    status: WorkflowStatus = WorkflowStatus.DRAFT
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    author: str | None = None
    tags: list[str] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def get_node(self, node_id: str) -> NodeInstance | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> EdgeSpec | None:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def nodes_of_type(self, node_type: str) -> list[NodeInstance]:
        return [n for n in self.nodes if n.type == node_type]

    def get_start_node(self) -> NodeInstance | None:
        """The unique start node, if any."""
        starts = self.nodes_of_type(START_NODE_TYPE)
        return starts[0] if starts else None

    def get_end_node(self) -> NodeInstance | None:
        ends = self.nodes_of_type(END_NODE_TYPE)
        return ends[0] if ends else None

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges leaving a node, in insertion order."""
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Get all edges entering a node."""
        return [e for e in self.edges if e.target == node_id]

    def connected_node_ids(self) -> set[str]:
        """IDs that appear as an endpoint of at least one edge."""
        ids: set[str] = set()
        for edge in self.edges:
            ids.add(edge.source)
            ids.add(edge.target)
        return ids

    def reachable_from(self, node_id: str) -> set[str]:
        """IDs reachable from ``node_id`` (inclusive) following edge direction."""
        reachable: set[str] = set()
        to_visit = [node_id]
        while to_visit:
            current = to_visit.pop()
            if current in reachable:
                continue
            reachable.add(current)
            for edge in self.get_outgoing_edges(current):
                to_visit.append(edge.target)
        return reachable
