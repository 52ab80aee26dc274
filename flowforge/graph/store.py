"""
Graph Store - the single writer of a workflow graph.

The store owns the live ``WorkflowGraph``. Every change goes through one of
its mutation methods, which validate the request, apply it, bump
``version``, stamp ``updated_at`` and hand a fresh snapshot to every
subscribed listener. Rejected requests change nothing and come back as a
``MutationResult`` with a reason; nothing here raises for a bad request.

Example:
    store = GraphStore.create(registry, name="Inventory sync")
    result = store.add_node("dataSource")
    store.add_edge("start-1", result.id)
    store.subscribe(lambda graph: print(graph.version))
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from flowforge.graph.edge import EdgeSpec, default_edge_id
from flowforge.graph.node import (
    CONTROL_NODE_TYPES,
    DESCRIPTION_OVERRIDE_KEY,
    END_NODE_TYPE,
    LABEL_OVERRIDE_KEY,
    START_NODE_TYPE,
    NodeInstance,
    NodeStatus,
    Position,
)
from flowforge.graph.registry import NodeTypeRegistry, format_validation_errors
from flowforge.graph.validator import ConnectionValidator
from flowforge.graph.workflow import WorkflowGraph, WorkflowStatus

logger = logging.getLogger(__name__)

GraphListener = Callable[[WorkflowGraph], None]


def _invalid_reason(what: str, error: Exception) -> str:
    if isinstance(error, ValidationError):
        return f"Invalid {what}: " + "; ".join(format_validation_errors(error))
    return f"Invalid {what}: {error}"


@dataclass
class MutationResult:
    """Outcome of a store mutation."""

    accepted: bool
    id: str | None = None
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def ok(cls, item_id: str | None = None) -> "MutationResult":
        return cls(accepted=True, id=item_id)

    @classmethod
    def rejected(cls, reason: str, item_id: str | None = None) -> "MutationResult":
        return cls(accepted=False, id=item_id, reason=reason)


def new_workflow_id() -> str:
    return f"workflow-{uuid.uuid4().hex[:8]}"


class GraphStore:
    """Holds the canonical node and edge sets of one workflow."""

    def __init__(
        self,
        graph: WorkflowGraph | None = None,
        registry: NodeTypeRegistry | None = None,
    ):
        self.registry = registry or NodeTypeRegistry()
        self.connection_validator = ConnectionValidator(self.registry)
        self._graph = graph.model_copy(deep=True) if graph else WorkflowGraph(id=new_workflow_id())
        self._listeners: dict[str, GraphListener] = {}
        self._listener_counter = 0
        self._issued_ids: set[str] = {n.id for n in self._graph.nodes}

    @classmethod
    def create(
        cls,
        registry: NodeTypeRegistry | None = None,
        name: str = "Untitled Workflow",
        description: str = "",
    ) -> "GraphStore":
        """New workflow seeded with one start and one end node."""
        graph = WorkflowGraph(
            id=new_workflow_id(),
            name=name,
            description=description,
            nodes=[
                NodeInstance(
                    id="start-1",
                    type=START_NODE_TYPE,
                    label="Start",
                    description="Workflow start point",
                    position=Position(x=50, y=200),
                ),
                NodeInstance(
                    id="end-1",
                    type=END_NODE_TYPE,
                    label="End",
                    description="Workflow end point",
                    position=Position(x=800, y=200),
                ),
            ],
        )
        return cls(graph, registry)

    # === READ ACCESS ===

    @property
    def version(self) -> int:
        return self._graph.version

    @property
    def status(self) -> WorkflowStatus:
        return self._graph.status

    def snapshot(self) -> WorkflowGraph:
        """Deep copy of the current graph; safe to hold across mutations."""
        return self._graph.model_copy(deep=True)

    def get_node(self, node_id: str) -> NodeInstance | None:
        node = self._graph.get_node(node_id)
        return node.model_copy(deep=True) if node else None

    # === SUBSCRIPTIONS ===

    def subscribe(self, listener: GraphListener) -> str:
        """Call ``listener(snapshot)`` after every accepted mutation."""
        self._listener_counter += 1
        listener_id = f"listener_{self._listener_counter}"
        self._listeners[listener_id] = listener
        return listener_id

    def unsubscribe(self, listener_id: str) -> bool:
        return self._listeners.pop(listener_id, None) is not None

    def _commit(self) -> None:
        self._graph.version += 1
        self._graph.updated_at = datetime.now()
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener_id, listener in list(self._listeners.items()):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Graph listener {listener_id} failed: {e}")

    # === NODES ===

    def _generate_node_id(self, node_type: str) -> str:
        while True:
            node_id = f"{node_type}-{uuid.uuid4().hex[:8]}"
            if node_id not in self._issued_ids:
                self._issued_ids.add(node_id)
                return node_id

    def add_node(
        self,
        node_type: str,
        position: Position | dict[str, float] | None = None,
        data: dict[str, Any] | None = None,
    ) -> MutationResult:
        """
        Add a node of ``node_type``.

        Args:
            node_type: A type known to the registry.
            position: Canvas position.
            data: Optional initial ``label``, ``description``, ``config`` or
                ``custom_config``.

        Returns:
            MutationResult carrying the new node id.
        """
        if node_type not in self.registry:
            return MutationResult.rejected(f"Unknown node type '{node_type}'")
        if node_type in CONTROL_NODE_TYPES and self._graph.nodes_of_type(node_type):
            return MutationResult.rejected(f"Workflow can only have one {node_type} node")

        data = data or {}
        try:
            node = NodeInstance(
                id=self._generate_node_id(node_type),
                type=node_type,
                label=data.get("label") or self.registry.default_label(node_type),
                description=(
                    data.get("description") or self.registry.default_description(node_type)
                ),
                position=Position.model_validate(position if position is not None else {}),
                config=dict(data.get("config") or {}),
                custom_config=data.get("custom_config"),
            )
        except (ValidationError, TypeError, ValueError) as e:
            return MutationResult.rejected(_invalid_reason("node", e))
        self._graph.nodes.append(node)
        self._commit()
        logger.debug(f"Added node {node.id}")
        return MutationResult.ok(node.id)

    def remove_node(self, node_id: str) -> MutationResult:
        """Remove a node and, in the same mutation, every edge touching it."""
        node = self._graph.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)
        if node.is_control:
            return MutationResult.rejected("Cannot delete start or end nodes", node_id)

        self._graph.nodes = [n for n in self._graph.nodes if n.id != node_id]
        removed = [e.id for e in self._graph.edges if e.touches(node_id)]
        self._graph.edges = [e for e in self._graph.edges if not e.touches(node_id)]
        self._commit()
        logger.debug(f"Removed node {node_id} and edges {removed}")
        return MutationResult.ok(node_id)

    def update_node_config(self, node_id: str, config: dict[str, Any]) -> MutationResult:
        """
        Merge ``config`` into the node's configuration.

        ``stepName`` and ``description`` keys also rename the node.
        """
        node = self._graph.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)

        node.config = {**node.config, **config}
        if config.get(LABEL_OVERRIDE_KEY):
            node.label = str(config[LABEL_OVERRIDE_KEY])
        if config.get(DESCRIPTION_OVERRIDE_KEY):
            node.description = str(config[DESCRIPTION_OVERRIDE_KEY])
        self._commit()
        return MutationResult.ok(node_id)

    def update_node_status(
        self,
        node_id: str,
        status: NodeStatus,
        progress: int | None = None,
        error_message: str | None = None,
    ) -> MutationResult:
        """Apply a status/progress update coming from the execution controller."""
        node = self._graph.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)

        try:
            status = NodeStatus(status)
        except ValueError:
            return MutationResult.rejected(f"Unknown node status '{status}'", node_id)
        updates: dict[str, Any] = {
            "status": status,
            "error_message": error_message if status == NodeStatus.ERROR else None,
        }

        # validate through the model so bad values never land in the graph
        try:
            if progress is not None:
                updates["progress"] = max(0, min(100, int(progress)))
            updated = NodeInstance.model_validate({**node.model_dump(), **updates})
        except (ValidationError, TypeError, ValueError) as e:
            return MutationResult.rejected(_invalid_reason("status update", e), node_id)
        self._graph.nodes = [updated if n.id == node_id else n for n in self._graph.nodes]
        self._commit()
        return MutationResult.ok(node_id)

    # === EDGES ===

    def add_edge(
        self,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> MutationResult:
        """Add an edge if the connection validator accepts it."""
        check = self.connection_validator.validate(self._graph, source, target, source_handle)
        if not check.accepted:
            logger.debug(f"Rejected connection {source} -> {target}: {check.reason}")
            return MutationResult.rejected(check.reason or "Connection rejected")

        edge_id = default_edge_id(source, target)
        suffix = 1
        while self._graph.get_edge(edge_id) is not None:
            suffix += 1
            edge_id = f"{default_edge_id(source, target)}-{suffix}"

        self._graph.edges.append(
            EdgeSpec(
                id=edge_id,
                source=source,
                target=target,
                source_handle=source_handle,
                target_handle=target_handle,
                type="smoothstep",
            )
        )
        self._commit()
        return MutationResult.ok(edge_id)

    def remove_edge(self, edge_id: str) -> MutationResult:
        if self._graph.get_edge(edge_id) is None:
            return MutationResult.rejected(f"Connection '{edge_id}' does not exist", edge_id)
        self._graph.edges = [e for e in self._graph.edges if e.id != edge_id]
        self._commit()
        return MutationResult.ok(edge_id)

    # === WHOLE-GRAPH ===

    def set_workflow_status(self, status: WorkflowStatus) -> MutationResult:
        self._graph.status = WorkflowStatus(status)
        self._commit()
        return MutationResult.ok(self._graph.id)

    def rename(self, name: str, description: str | None = None) -> MutationResult:
        if not name.strip():
            return MutationResult.rejected("Workflow name is required", self._graph.id)
        self._graph.name = name
        if description is not None:
            self._graph.description = description
        self._commit()
        return MutationResult.ok(self._graph.id)

    def load(self, graph: WorkflowGraph) -> MutationResult:
        """
        Replace the whole graph (bulk load from an import).

        The loaded graph keeps its own ids; the version continues from
        whichever of the two graphs is further along so it never decreases.
        """
        version = max(self._graph.version, graph.version)
        self._graph = graph.model_copy(deep=True)
        self._graph.version = version
        self._issued_ids.update(n.id for n in self._graph.nodes)
        self._commit()
        logger.info(f"Loaded workflow '{graph.name}' ({len(graph.nodes)} nodes)")
        return MutationResult.ok(graph.id)
