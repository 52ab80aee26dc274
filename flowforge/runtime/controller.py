"""
Execution Controller - runs a workflow by animating each step in order.

The controller:
1. Validates a snapshot of the graph (structure + configuration)
2. Plans the run order from the same snapshot
3. Walks the order, moving each step idle → processing → completed
4. Reports every status change through the graph store (and the event bus)
5. Returns a RunResult; refusals, stops and faults are values, not exceptions

Steps are simulated: progress advances by a fixed step on a fixed
wall-clock tick, then the step "runs" for its type's simulated duration. A
``step_runner`` coroutine can replace the simulated duration.

Cancellation is cooperative. ``stop()`` only raises a flag; the tick loop
checks it around every tick, so a stop is honored within one tick.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from flowforge.config import ExecutionConfig
from flowforge.errors import ExecutionFault, NoStartNodeError
from flowforge.graph.node import NodeInstance, NodeStatus
from flowforge.graph.planner import RunOrderPlanner
from flowforge.graph.store import GraphStore
from flowforge.graph.validator import WorkflowValidator
from flowforge.graph.workflow import WorkflowStatus
from flowforge.observability import set_trace_context
from flowforge.runtime.event_bus import EventBus, EventType

logger = logging.getLogger(__name__)

StepRunner = Callable[[NodeInstance], Awaitable[None]]


@dataclass
class RunResult:
    """Result of one run request."""

    success: bool
    run_id: str | None = None
    errors: list[str] = field(default_factory=list)
    refused: bool = False  # validation failed, nothing ran
    stopped: bool = False  # stop() was honored mid-run
    path: list[str] = field(default_factory=list)  # node ids that completed, in order
    order: list[str] = field(default_factory=list)  # planned run order
    failed_node: str | None = None

    @property
    def error(self) -> str:
        return "; ".join(self.errors)


class _StopRequested(Exception):
    """Raised inside the tick loop when a stop has been requested."""


class ExecutionController:
    """
    Drives per-node status transitions along the planned run order.

    Example:
        controller = ExecutionController(store, config=ExecutionConfig())
        task = asyncio.create_task(controller.run())
        ...
        controller.stop()
        result = await task
    """

    def __init__(
        self,
        store: GraphStore,
        config: ExecutionConfig | None = None,
        event_bus: EventBus | None = None,
        step_runner: StepRunner | None = None,
        planner: RunOrderPlanner | None = None,
    ):
        self.store = store
        self.config = config or ExecutionConfig()
        self._event_bus = event_bus
        self._step_runner = step_runner
        self.planner = planner or RunOrderPlanner()
        self.validator = WorkflowValidator(
            store.registry, require_end_node=self.config.require_end_node
        )

        self._running = False
        self._stop_requested = asyncio.Event()
        self._current_node_id: str | None = None
        self._run_id: str | None = None
        self._graph_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def current_node_id(self) -> str | None:
        """The step currently processing, if any."""
        return self._current_node_id

    def stop(self) -> bool:
        """
        Request the running workflow to stop.

        Returns:
            True if a run was in progress and the request was recorded.
        """
        if not self._running:
            return False
        self._stop_requested.set()
        logger.info("Stop requested - will halt before the next tick")
        return True

    # === RUN ===

    def check(self) -> RunResult:
        """Validate and plan the current graph without running anything."""
        snapshot = self.store.snapshot()
        validation = self.validator.validate(snapshot)
        errors = list(validation.errors)
        order: list[str] = []
        try:
            order = self.planner.plan(snapshot)
        except NoStartNodeError as e:
            if str(e) not in errors:
                errors.append(str(e))
        return RunResult(success=not errors, refused=bool(errors), errors=errors, order=order)

    async def run(self) -> RunResult:
        """Run the workflow once. Never raises for workflow-level problems."""
        graph_id = self.store.snapshot().id
        self._graph_id = graph_id

        if self._running:
            return RunResult(success=False, refused=True, errors=["Workflow is already running"])

        checked = self.check()
        if checked.refused:
            logger.warning(
                f"Run refused: {checked.errors}", extra={"event": EventType.EXECUTION_REFUSED}
            )
            await self._emit(EventType.EXECUTION_REFUSED, graph_id, None, errors=checked.errors)
            return checked

        order = checked.order
        run_id = uuid.uuid4().hex
        self._run_id = run_id
        self._running = True
        self._stop_requested.clear()
        set_trace_context(workflow_id=graph_id, run_id=run_id)

        completed: list[str] = []
        try:
            self._reset_nodes()
            self.store.set_workflow_status(WorkflowStatus.RUNNING)
            logger.info(
                f"▶ Starting run with {len(order)} planned steps",
                extra={"event": EventType.EXECUTION_STARTED},
            )
            await self._emit(EventType.EXECUTION_STARTED, graph_id, run_id, order=order)

            for node_id in order:
                node = self.store.get_node(node_id)
                if node is None:
                    logger.warning(f"Node {node_id} was removed before it could run, skipping")
                    continue
                if node.is_control:
                    continue
                await self._execute_node(node)
                completed.append(node_id)

        except _StopRequested:
            interrupted = self._current_node_id
            if interrupted is not None:
                if self.store.update_node_status(interrupted, NodeStatus.IDLE, progress=0):
                    await self._emit_status(interrupted, NodeStatus.IDLE, 0)
            self.store.set_workflow_status(WorkflowStatus.DRAFT)
            logger.info(
                f"⏹ Run stopped ({len(completed)}/{len(order)} steps completed)",
                extra={"event": EventType.EXECUTION_STOPPED},
            )
            await self._emit(EventType.EXECUTION_STOPPED, graph_id, run_id, completed=completed)
            return RunResult(
                success=False,
                run_id=run_id,
                stopped=True,
                errors=["Workflow execution stopped"],
                path=completed,
                order=order,
            )

        except ExecutionFault as e:
            self.store.set_workflow_status(WorkflowStatus.ERROR)
            logger.error(
                f"✗ Run failed at {e.node_id}: {e}", extra={"event": EventType.EXECUTION_FAILED}
            )
            await self._emit(
                EventType.EXECUTION_FAILED, graph_id, run_id, node_id=e.node_id, error=str(e)
            )
            return RunResult(
                success=False,
                run_id=run_id,
                errors=[str(e)],
                path=completed,
                order=order,
                failed_node=e.node_id,
            )

        finally:
            self._running = False
            self._current_node_id = None
            self._stop_requested.clear()
            set_trace_context(node_id=None)

        self.store.set_workflow_status(WorkflowStatus.COMPLETED)
        logger.info(
            "✓ Workflow executed successfully", extra={"event": EventType.EXECUTION_COMPLETED}
        )
        await self._emit(EventType.EXECUTION_COMPLETED, graph_id, run_id, completed=completed)
        return RunResult(success=True, run_id=run_id, path=completed, order=order)

    # === PER-NODE STATE MACHINE ===

    async def _execute_node(self, node: NodeInstance) -> None:
        set_trace_context(node_id=node.id)
        self._check_stop()
        self._current_node_id = node.id

        self._apply_status(node.id, NodeStatus.PROCESSING, progress=0)
        await self._emit_status(node.id, NodeStatus.PROCESSING, 0)

        progress = 0
        while progress < 100:
            self._check_stop()
            await asyncio.sleep(self.config.tick_interval)
            self._check_stop()
            progress = min(100, progress + self.config.progress_step)
            self._apply_status(node.id, NodeStatus.PROCESSING, progress=progress)
            logger.debug(
                f"{node.id} at {progress}%",
                extra={"event": EventType.NODE_PROGRESS, "progress": progress},
            )
            await self._emit_progress(node.id, progress)

        try:
            if self._step_runner is not None:
                await self._step_runner(node)
            else:
                await self._hold(self.store.registry.step_duration(node.type, self.config))
        except _StopRequested:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            self._apply_status(node.id, NodeStatus.ERROR, error_message=message)
            logger.warning(
                f"✗ {node.label or node.id} failed: {message}",
                extra={"event": EventType.NODE_STATUS_CHANGED, "status": NodeStatus.ERROR},
            )
            await self._emit_status(node.id, NodeStatus.ERROR, 100, error_message=message)
            raise ExecutionFault(message, node_id=node.id) from e

        self._check_stop()
        self._apply_status(node.id, NodeStatus.COMPLETED, progress=100)
        await self._emit_status(node.id, NodeStatus.COMPLETED, 100)
        logger.info(
            f"✓ {node.label or node.id} completed successfully",
            extra={
                "event": EventType.NODE_STATUS_CHANGED,
                "status": NodeStatus.COMPLETED,
                "progress": 100,
            },
        )
        self._current_node_id = None

    async def _hold(self, seconds: float) -> None:
        """Sleep ``seconds`` in tick-sized slices, honoring stop between slices."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while True:
            self._check_stop()
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            if self.config.tick_interval > 0:
                await asyncio.sleep(min(remaining, self.config.tick_interval))
            else:
                await asyncio.sleep(remaining)

    def _check_stop(self) -> None:
        if self._stop_requested.is_set():
            raise _StopRequested()

    def _reset_nodes(self) -> None:
        for node in self.store.snapshot().nodes:
            if node.status != NodeStatus.IDLE or node.progress != 0:
                self._apply_status(node.id, NodeStatus.IDLE, progress=0)

    def _apply_status(
        self,
        node_id: str,
        status: NodeStatus,
        progress: int | None = None,
        error_message: str | None = None,
    ) -> None:
        result = self.store.update_node_status(node_id, status, progress, error_message)
        if not result.accepted:
            raise ExecutionFault(result.reason or "Status update rejected", node_id=node_id)

    # === EVENTS ===

    async def _emit(self, event_type: EventType, graph_id: str, run_id: str | None, **data):
        if self._event_bus is not None:
            await self._event_bus.emit_execution_event(event_type, graph_id, run_id, **data)

    async def _emit_status(
        self,
        node_id: str,
        status: NodeStatus,
        progress: int,
        error_message: str | None = None,
    ) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit_node_status(
                workflow_id=self._graph_id,
                node_id=node_id,
                status=status.value,
                progress=progress,
                run_id=self._run_id,
                error_message=error_message,
            )

    async def _emit_progress(self, node_id: str, progress: int) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit_node_progress(
                workflow_id=self._graph_id,
                node_id=node_id,
                progress=progress,
                run_id=self._run_id,
            )
