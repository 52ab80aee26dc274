"""
flowforge - a workflow graph editor core.

Build workflows out of typed steps, connect them under the editor's
connection rules, validate and plan them, and run them with a simulated
runner that animates per-step progress.
"""

from flowforge.config import ExecutionConfig
from flowforge.editor import WorkflowEditor
from flowforge.errors import ExecutionFault, NoStartNodeError, ParseError, WorkflowError
from flowforge.graph import (
    EdgeSpec,
    GraphStore,
    MutationResult,
    NodeInstance,
    NodeStatus,
    NodeTypeRegistry,
    RunOrderPlanner,
    WorkflowGraph,
    WorkflowStatus,
)
from flowforge.runtime import EventBus, EventType, ExecutionController, RunResult
from flowforge.storage import WorkflowLibrary, export_snapshot, import_snapshot

__version__ = "0.1.0"

__all__ = [
    "ExecutionConfig",
    "WorkflowEditor",
    # Errors
    "WorkflowError",
    "ParseError",
    "ExecutionFault",
    "NoStartNodeError",
    # Graph
    "EdgeSpec",
    "GraphStore",
    "MutationResult",
    "NodeInstance",
    "NodeStatus",
    "NodeTypeRegistry",
    "RunOrderPlanner",
    "WorkflowGraph",
    "WorkflowStatus",
    # Runtime
    "EventBus",
    "EventType",
    "ExecutionController",
    "RunResult",
    # Storage
    "WorkflowLibrary",
    "export_snapshot",
    "import_snapshot",
]
