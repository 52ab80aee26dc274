"""Workflow graph: nodes, edges, the node-type registry, validation and planning."""

from flowforge.graph.edge import EdgeSpec, default_edge_id
from flowforge.graph.node import (
    CONTROL_NODE_TYPES,
    END_NODE_TYPE,
    START_NODE_TYPE,
    NodeInstance,
    NodeStatus,
    Position,
)
from flowforge.graph.planner import RunOrderPlanner
from flowforge.graph.registry import NodeTypeRegistry
from flowforge.graph.store import GraphStore, MutationResult
from flowforge.graph.validator import (
    ConnectionCheck,
    ConnectionValidator,
    ValidationResult,
    WorkflowValidator,
)
from flowforge.graph.workflow import WorkflowGraph, WorkflowStatus

__all__ = [
    # Model
    "EdgeSpec",
    "default_edge_id",
    "NodeInstance",
    "NodeStatus",
    "Position",
    "WorkflowGraph",
    "WorkflowStatus",
    "START_NODE_TYPE",
    "END_NODE_TYPE",
    "CONTROL_NODE_TYPES",
    # Registry
    "NodeTypeRegistry",
    # Store
    "GraphStore",
    "MutationResult",
    # Validation and planning
    "ConnectionCheck",
    "ConnectionValidator",
    "ValidationResult",
    "WorkflowValidator",
    "RunOrderPlanner",
]
