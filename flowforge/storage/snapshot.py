"""
Snapshot codec - the only place workflows are (de)serialized.

``export_snapshot`` turns a WorkflowGraph into the JSON document described in
``flowforge.schemas.workflow_definition``; ``import_snapshot`` parses such a
document back. Parsing is all-or-nothing: a malformed document raises
``ParseError`` and produces no graph.
"""

import json
import logging
from datetime import datetime

from pydantic import ValidationError

from flowforge.errors import ParseError
from flowforge.graph.edge import EdgeSpec
from flowforge.graph.node import NodeInstance, NodeStatus, Position
from flowforge.graph.registry import format_validation_errors
from flowforge.graph.workflow import WorkflowGraph
from flowforge.schemas.workflow_definition import (
    WirePosition,
    WorkflowConnection,
    WorkflowDefinition,
    WorkflowMetadata,
    WorkflowNodeData,
    WorkflowNodeInstance,
)

logger = logging.getLogger(__name__)


def graph_to_definition(graph: WorkflowGraph) -> WorkflowDefinition:
    """Convert the in-memory graph to its wire shape."""
    return WorkflowDefinition(
        id=graph.id,
        name=graph.name,
        description=graph.description,
        version=graph.version,
        nodes=[
            WorkflowNodeInstance(
                id=node.id,
                type=node.type,
                position=WirePosition(x=node.position.x, y=node.position.y),
                data=WorkflowNodeData(
                    label=node.label,
                    description=node.description,
                    config=node.config,
                    custom_config=node.custom_config,
                    status=node.status.value,
                    progress=node.progress,
                    error_message=node.error_message,
                ),
            )
            for node in graph.nodes
        ],
        connections=[
            WorkflowConnection(
                id=edge.id,
                source=edge.source,
                target=edge.target,
                source_handle=edge.source_handle,
                target_handle=edge.target_handle,
                type=edge.type,
            )
            for edge in graph.edges
        ],
        metadata=WorkflowMetadata(
            created=graph.created_at,
            modified=graph.updated_at,
            author=graph.author,
            tags=graph.tags,
        ),
    )


def definition_to_graph(definition: WorkflowDefinition) -> WorkflowGraph:
    """
    Convert a parsed wire document to a graph.

    Raises:
        ParseError: On duplicate ids, dangling connections or unknown statuses.
    """
    errors = []

    node_ids = [n.id for n in definition.nodes]
    duplicates = sorted({i for i in node_ids if node_ids.count(i) > 1})
    if duplicates:
        errors.append(f"Duplicate node ids: {duplicates}")

    edge_ids = [c.id for c in definition.connections]
    duplicate_edges = sorted({i for i in edge_ids if edge_ids.count(i) > 1})
    if duplicate_edges:
        errors.append(f"Duplicate connection ids: {duplicate_edges}")

    known = set(node_ids)
    for conn in definition.connections:
        if conn.source not in known:
            errors.append(f"Connection '{conn.id}' references missing source '{conn.source}'")
        if conn.target not in known:
            errors.append(f"Connection '{conn.id}' references missing target '{conn.target}'")

    valid_statuses = {s.value for s in NodeStatus}
    for node in definition.nodes:
        if node.data.status not in valid_statuses:
            errors.append(f"Node '{node.id}' has unknown status '{node.data.status}'")

    if errors:
        raise ParseError("Invalid workflow snapshot", errors)

    nodes = []
    for item in definition.nodes:
        status = NodeStatus(item.data.status)
        nodes.append(
            NodeInstance(
                id=item.id,
                type=item.type,
                label=item.data.label,
                description=item.data.description,
                position=Position(x=item.position.x, y=item.position.y),
                status=status,
                progress=item.data.progress,
                error_message=item.data.error_message if status == NodeStatus.ERROR else None,
                config=item.data.config,
                custom_config=item.data.custom_config,
            )
        )

    edges = [
        EdgeSpec(
            id=conn.id,
            source=conn.source,
            target=conn.target,
            source_handle=conn.source_handle,
            target_handle=conn.target_handle,
            type=conn.type,
        )
        for conn in definition.connections
    ]

    meta = definition.metadata
    version = definition.version if isinstance(definition.version, int) else 1
    now = datetime.now()
    return WorkflowGraph(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        nodes=nodes,
        edges=edges,
        version=max(version, 1),
        created_at=meta.created or now,
        updated_at=meta.modified or now,
        author=meta.author,
        tags=meta.tags,
    )


def export_snapshot(graph: WorkflowGraph, indent: int | None = 2) -> str:
    """Serialize a graph to the JSON wire format."""
    return graph_to_definition(graph).model_dump_json(by_alias=True, indent=indent)


def import_snapshot(text: str) -> WorkflowGraph:
    """
    Parse a JSON snapshot into a graph.

    Raises:
        ParseError: If the text is not valid JSON or not a valid workflow.
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ParseError("Workflow snapshot must be a JSON object")

    try:
        definition = WorkflowDefinition.model_validate(raw)
    except ValidationError as e:
        raise ParseError("Invalid workflow snapshot", format_validation_errors(e)) from e

    graph = definition_to_graph(definition)
    logger.debug(f"Imported workflow '{graph.id}' with {len(graph.nodes)} nodes")
    return graph
