"""
Workflow Editor - the intent facade a UI layer drives.

Every gesture on the workflow canvas maps to one method here: add a
step, draw a connection, open a step's configuration, save it, delete a step,
run, stop, import and export. Failures never raise; they come back as
``MutationResult`` / ``RunResult`` values whose ``reason`` or ``errors`` the UI
shows to the user.

Gestures that need a dialog (configure, delete confirmation) are published on
the event bus as ``configure_requested`` / ``delete_requested``; the UI opens
the dialog and answers with ``save_config`` / ``delete_node``.
"""

import logging
from typing import Any

from flowforge.config import ExecutionConfig
from flowforge.errors import NoStartNodeError, ParseError
from flowforge.graph.node import NodeInstance, Position
from flowforge.graph.registry import NodeTypeRegistry
from flowforge.graph.store import GraphListener, GraphStore, MutationResult
from flowforge.graph.validator import ValidationResult
from flowforge.graph.workflow import WorkflowGraph
from flowforge.runtime.controller import ExecutionController, RunResult, StepRunner
from flowforge.runtime.event_bus import EventBus, EventType, WorkflowEvent
from flowforge.storage.snapshot import export_snapshot, import_snapshot
from flowforge.storage.workflow_library import WorkflowLibrary

logger = logging.getLogger(__name__)

RUNNING_REASON = "Cannot modify the workflow while it is running"


class WorkflowEditor:
    """
    One open workflow plus the services that act on it.

    Example:
        editor = WorkflowEditor()
        source = editor.add_node("dataSource").id
        await editor.connect("start-1", source)
        await editor.connect(source, "end-1")
        editor.save_config(source, {"sourceType": "netsuite"})
        result = await editor.run()
    """

    def __init__(
        self,
        registry: NodeTypeRegistry | None = None,
        config: ExecutionConfig | None = None,
        event_bus: EventBus | None = None,
        step_runner: StepRunner | None = None,
        graph: WorkflowGraph | None = None,
    ):
        self.registry = registry or NodeTypeRegistry()
        self.event_bus = event_bus or EventBus()
        if graph is not None:
            self.store = GraphStore(graph, self.registry)
        else:
            self.store = GraphStore.create(self.registry)
        self.controller = ExecutionController(
            self.store,
            config=config,
            event_bus=self.event_bus,
            step_runner=step_runner,
        )

    # === READ ACCESS ===

    @property
    def workflow_id(self) -> str:
        return self.store.snapshot().id

    @property
    def is_running(self) -> bool:
        return self.controller.is_running

    def snapshot(self) -> WorkflowGraph:
        return self.store.snapshot()

    def subscribe(self, listener: GraphListener) -> str:
        """Register a render listener; it receives a snapshot after each change."""
        return self.store.subscribe(listener)

    def unsubscribe(self, listener_id: str) -> bool:
        return self.store.unsubscribe(listener_id)

    # === WORKFLOW LIFECYCLE ===

    def new_workflow(
        self, name: str = "Untitled Workflow", description: str = ""
    ) -> MutationResult:
        """Replace the open workflow with a fresh one holding only start and end."""
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON)
        fresh = GraphStore.create(self.registry, name=name, description=description)
        return self.store.load(fresh.snapshot())

    def rename(self, name: str, description: str | None = None) -> MutationResult:
        return self.store.rename(name, description)

    # === EDITING ===

    def add_node(
        self,
        node_type: str,
        position: Position | dict[str, float] | None = None,
        data: dict[str, Any] | None = None,
    ) -> MutationResult:
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON)
        return self.store.add_node(node_type, position, data)

    async def connect(
        self,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> MutationResult:
        """
        Draw a connection. A rejection is also published as
        ``connection_rejected`` so the UI can show the reason.
        """
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON)
        result = self.store.add_edge(source, target, source_handle, target_handle)
        if not result.accepted:
            await self.event_bus.publish(
                WorkflowEvent(
                    type=EventType.CONNECTION_REJECTED,
                    workflow_id=self.workflow_id,
                    node_id=source,
                    data={
                        "source": source,
                        "target": target,
                        "source_handle": source_handle,
                        "reason": result.reason,
                    },
                )
            )
        return result

    def delete_node(self, node_id: str) -> MutationResult:
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON, node_id)
        return self.store.remove_node(node_id)

    def delete_edge(self, edge_id: str) -> MutationResult:
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON, edge_id)
        return self.store.remove_edge(edge_id)

    # === CONFIGURATION ===

    async def request_configure(self, node_id: str) -> MutationResult:
        """
        Ask the UI to open the configuration dialog for ``node_id``.

        Publishes ``configure_requested`` with the node's field schema and its
        current configuration.
        """
        node = self.store.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)
        if node.is_control:
            return MutationResult.rejected(
                "Start and end nodes are workflow control points and need no configuration",
                node_id,
            )

        fields = self.registry.resolve(node.type) or []
        await self.event_bus.publish(
            WorkflowEvent(
                type=EventType.CONFIGURE_REQUESTED,
                workflow_id=self.workflow_id,
                node_id=node_id,
                data={
                    "node_type": node.type,
                    "label": node.label,
                    "fields": [f.model_dump(by_alias=True, exclude_none=True) for f in fields],
                    "config": dict(node.config),
                    "custom_config": node.custom_config,
                },
            )
        )
        return MutationResult.ok(node_id)

    async def request_delete(self, node_id: str) -> MutationResult:
        """Ask the UI to confirm deletion of ``node_id``."""
        node = self.store.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)
        if node.is_control:
            return MutationResult.rejected("Cannot delete start or end nodes", node_id)

        await self.event_bus.publish(
            WorkflowEvent(
                type=EventType.DELETE_REQUESTED,
                workflow_id=self.workflow_id,
                node_id=node_id,
                data={"label": node.label},
            )
        )
        return MutationResult.ok(node_id)

    def save_config(
        self, node_id: str, config: dict[str, Any], validate: bool = False
    ) -> MutationResult:
        """
        Merge ``config`` into a node's configuration.

        Args:
            node_id: Node being configured.
            config: Field values from the dialog.
            validate: Check the merged values against the type's field schema
                first and reject with every problem found.
        """
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON, node_id)
        node = self.store.get_node(node_id)
        if node is None:
            return MutationResult.rejected(f"Node '{node_id}' does not exist", node_id)

        if validate:
            problems = self.registry.validate_config(node.type, {**node.config, **config})
            if problems:
                return MutationResult.rejected("; ".join(problems), node_id)

        return self.store.update_node_config(node_id, config)

    # === VALIDATION AND EXECUTION ===

    def validate(self) -> ValidationResult:
        return self.controller.validator.validate(self.store.snapshot())

    def plan(self) -> list[str]:
        """Run order of the open workflow; empty when there is no start node."""
        try:
            return self.controller.planner.plan(self.store.snapshot())
        except NoStartNodeError:
            return []

    def unconfigured_nodes(self) -> list[NodeInstance]:
        graph = self.store.snapshot()
        missing = set(self.controller.validator.find_unconfigured(graph))
        return [n for n in graph.nodes if n.id in missing]

    async def run(self) -> RunResult:
        return await self.controller.run()

    def stop(self) -> bool:
        return self.controller.stop()

    # === IMPORT / EXPORT ===

    def export_snapshot(self) -> str:
        return export_snapshot(self.store.snapshot())

    async def import_snapshot(self, text: str) -> MutationResult:
        """
        Replace the open workflow with a parsed snapshot.

        A malformed snapshot is rejected and the open workflow is untouched.
        """
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON)
        try:
            graph = import_snapshot(text)
        except ParseError as e:
            logger.warning(f"Import failed: {e.errors}")
            return MutationResult.rejected("; ".join(e.errors))

        result = self.store.load(graph)
        await self.event_bus.publish(
            WorkflowEvent(
                type=EventType.WORKFLOW_LOADED,
                workflow_id=graph.id,
                data={"name": graph.name, "node_count": len(graph.nodes)},
            )
        )
        return result

    def load_node_definitions(self, text: str, replace: bool = False) -> MutationResult:
        """Register node types from a ``{"nodeDefinitions": [...]}`` document."""
        try:
            registered = self.registry.load_definitions(text, replace=replace)
        except ParseError as e:
            logger.warning(f"Node definitions rejected: {e.errors}")
            return MutationResult.rejected("; ".join(e.errors))
        logger.info(f"Registered node types: {registered}")
        return MutationResult.ok()

    def save_to(self, library: WorkflowLibrary) -> MutationResult:
        """Store the open workflow in ``library`` (overwrites an older copy)."""
        graph = self.store.snapshot()
        try:
            library.save(graph)
        except (OSError, ParseError) as e:
            logger.error(f"Could not save workflow {graph.id} to {library.path}: {e}")
            return MutationResult.rejected(str(e), graph.id)
        return MutationResult.ok(graph.id)

    async def open_from(self, library: WorkflowLibrary, workflow_id: str) -> MutationResult:
        """Replace the open workflow with one saved in ``library``."""
        if self.is_running:
            return MutationResult.rejected(RUNNING_REASON)
        try:
            graph = library.load(workflow_id)
        except ParseError as e:
            return MutationResult.rejected("; ".join(e.errors), workflow_id)
        except OSError as e:
            return MutationResult.rejected(str(e), workflow_id)
        if graph is None:
            return MutationResult.rejected(f"No saved workflow '{workflow_id}'", workflow_id)

        result = self.store.load(graph)
        await self.event_bus.publish(
            WorkflowEvent(
                type=EventType.WORKFLOW_LOADED,
                workflow_id=graph.id,
                data={"name": graph.name, "node_count": len(graph.nodes)},
            )
        )
        return result
