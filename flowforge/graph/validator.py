"""Structural validation for workflow graphs.

Two validators live here:

- ``ConnectionValidator`` decides whether a candidate edge may join the graph.
  The graph store consults it for every ``add_edge``.
- ``WorkflowValidator`` runs the pre-run checks (control nodes, connectivity,
  configuration) that decide whether the execution controller may start.

Both take an explicit graph snapshot and return result values; neither
mutates anything.
"""

import logging
from dataclasses import dataclass, field

from flowforge.graph.node import END_NODE_TYPE, START_NODE_TYPE
from flowforge.graph.registry import NodeTypeRegistry
from flowforge.graph.workflow import WorkflowGraph

logger = logging.getLogger(__name__)

ONE_OUTGOING_REASON = "Each node can only have one outgoing connection"
ONE_INCOMING_REASON = "Each node can only have one incoming connection"
NO_PORT_REASON = "Connections from a branching node must name an output port"


@dataclass
class ConnectionCheck:
    """Verdict on a candidate edge."""

    accepted: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> "ConnectionCheck":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "ConnectionCheck":
        return cls(accepted=False, reason=reason)


@dataclass
class ValidationResult:
    """Result of validating a whole workflow."""

    errors: list[str] = field(default_factory=list)
    structural_errors: list[str] = field(default_factory=list)
    unconfigured_nodes: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    @property
    def error(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""


class ConnectionValidator:
    """
    Admits or rejects candidate edges.

    Rules, checked in order:
    a. both endpoints exist and differ, the connection is not a duplicate,
       ``end`` never originates an edge and ``start`` never receives one
    b. a single-output source may have only one outgoing edge
    c. a target other than ``end`` may have only one incoming edge
    d. multi-port sources (conditional, switch) admit one edge per declared
       output port
    """

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry

    def validate(
        self,
        graph: WorkflowGraph,
        source: str,
        target: str,
        source_handle: str | None = None,
    ) -> ConnectionCheck:
        source_node = graph.get_node(source)
        target_node = graph.get_node(target)

        # (a) endpoints
        if source_node is None:
            return ConnectionCheck.reject(f"Source node '{source}' does not exist")
        if target_node is None:
            return ConnectionCheck.reject(f"Target node '{target}' does not exist")
        if source == target:
            return ConnectionCheck.reject("A node cannot connect to itself")
        if source_node.type == END_NODE_TYPE:
            return ConnectionCheck.reject("The end node cannot have outgoing connections")
        if target_node.type == START_NODE_TYPE:
            return ConnectionCheck.reject("The start node cannot have incoming connections")

        outgoing = graph.get_outgoing_edges(source)
        for edge in outgoing:
            if edge.target == target and edge.source_handle == source_handle:
                return ConnectionCheck.reject("These steps are already connected")

        multi_port = self.registry.is_multi_port(source_node.type)

        # (b) one outgoing connection for single-output nodes
        if source_node.type != START_NODE_TYPE and not multi_port and outgoing:
            return ConnectionCheck.reject(ONE_OUTGOING_REASON)

        # (c) one incoming connection unless the target is the end node
        if target_node.type != END_NODE_TYPE and graph.get_incoming_edges(target):
            return ConnectionCheck.reject(ONE_INCOMING_REASON)

        # (d) declared ports only, one edge per port, for multi-port sources
        if multi_port:
            if source_handle is None:
                return ConnectionCheck.reject(NO_PORT_REASON)
            if not self.registry.has_output_port(source_node.type, source_handle):
                return ConnectionCheck.reject(f"Unknown output port '{source_handle}'")
            if any(e.source_handle == source_handle for e in outgoing):
                return ConnectionCheck.reject(
                    f"Output port '{source_handle}' already has a connection"
                )

        return ConnectionCheck.accept()


class WorkflowValidator:
    """
    Pre-run checks for a workflow snapshot.

    Structural rules: a start node, an end node (when required), no
    disconnected or unreachable steps, and no connection-degree violations
    (which can only arrive through imported snapshots). Configuration rule:
    every step other than start/end is configured according to the registry.
    """

    def __init__(self, registry: NodeTypeRegistry, require_end_node: bool = True):
        self.registry = registry
        self.require_end_node = require_end_node

    def validate_structure(self, graph: WorkflowGraph) -> list[str]:
        errors = []

        start = graph.get_start_node()
        if start is None:
            errors.append("Workflow must have a start node")
        if self.require_end_node and graph.get_end_node() is None:
            errors.append("Workflow must have an end node")

        for node_type in (START_NODE_TYPE, END_NODE_TYPE):
            if len(graph.nodes_of_type(node_type)) > 1:
                errors.append(f"Workflow can only have one {node_type} node")

        connected = graph.connected_node_ids()
        steps = [n for n in graph.nodes if not n.is_control]
        disconnected = [n for n in steps if n.id not in connected]
        if disconnected:
            errors.append(f"{len(disconnected)} disconnected node(s) found")

        if start is not None:
            reachable = graph.reachable_from(start.id)
            unreachable = [n for n in steps if n.id in connected and n.id not in reachable]
            if unreachable:
                errors.append(f"{len(unreachable)} node(s) unreachable from the start node")

        errors.extend(self._degree_errors(graph))
        return errors

    def _degree_errors(self, graph: WorkflowGraph) -> list[str]:
        errors = []
        for node in graph.nodes:
            outgoing = graph.get_outgoing_edges(node.id)
            if node.type != START_NODE_TYPE:
                if self.registry.is_multi_port(node.type):
                    handles = [e.source_handle for e in outgoing]
                    if len(handles) != len(set(handles)):
                        errors.append(f"Node '{node.id}' has more than one connection per port")
                    undeclared = sorted(
                        str(h) for h in set(handles)
                        if not self.registry.has_output_port(node.type, h)
                    )
                    if undeclared:
                        errors.append(
                            f"Node '{node.id}' uses undeclared output ports: {undeclared}"
                        )
                elif len(outgoing) > 1:
                    errors.append(f"Node '{node.id}' has more than one outgoing connection")
            if node.type != END_NODE_TYPE and len(graph.get_incoming_edges(node.id)) > 1:
                errors.append(f"Node '{node.id}' has more than one incoming connection")
        return errors

    def find_unconfigured(self, graph: WorkflowGraph) -> list[str]:
        """IDs of steps that still need configuration."""
        return [n.id for n in graph.nodes if not self.registry.is_configured(n)]

    def validate(self, graph: WorkflowGraph) -> ValidationResult:
        """Run every check and collect all reasons."""
        structural = self.validate_structure(graph)
        unconfigured = self.find_unconfigured(graph)

        errors = list(structural)
        if unconfigured:
            errors.append(f"{len(unconfigured)} node(s) need configuration")

        if errors:
            logger.debug(f"Workflow '{graph.id}' failed validation: {errors}")

        return ValidationResult(
            errors=errors,
            structural_errors=structural,
            unconfigured_nodes=unconfigured,
        )
