"""
Tests for ExecutionController - the per-node state machine, refusals,
cooperative stop and execution faults.

All tests use a zero-delay config, so each tick is a bare ``asyncio.sleep(0)``.
"""

import asyncio
import logging

import pytest

from flowforge.graph.node import NodeInstance, NodeStatus
from flowforge.graph.store import GraphStore
from flowforge.graph.workflow import WorkflowGraph, WorkflowStatus
from flowforge.runtime.controller import ExecutionController
from flowforge.runtime.event_bus import EventBus, EventType

from .conftest import make_graph

# === HELPER FUNCTIONS ===


def record_transitions(store: GraphStore) -> dict[str, list[tuple[str, int]]]:
    """Subscribe to the store and collect each node's distinct (status, progress) values."""
    history: dict[str, list[tuple[str, int]]] = {
        n.id: [(n.status.value, n.progress)] for n in store.snapshot().nodes
    }

    def listener(graph):
        for node in graph.nodes:
            state = (node.status.value, node.progress)
            seen = history.setdefault(node.id, [])
            if not seen or seen[-1] != state:
                seen.append(state)

    store.subscribe(listener)
    return history


def three_step_store(registry) -> GraphStore:
    graph = make_graph(
        [
            ("A", "dataSource", {"sourceType": "csv"}),
            ("B", "process", {"transformationType": "merge"}),
            ("C", "visualization", {"chartType": "bar"}),
        ]
    )
    return GraphStore(graph, registry)


PROCESSING_TICKS = [("processing", p) for p in (0, 20, 40, 60, 80, 100)]


def branching_store(registry, switch: bool = False) -> GraphStore:
    """
    start -> branch --first port--> P -> end
                    --second port-> F -> end
    """
    if switch:
        branch = NodeInstance(id="branch", type="switch", config={"variable": "region"})
        ports = ("case-0", "case-1")
    else:
        branch = NodeInstance(id="branch", type="conditional", config={"variable": "qty"})
        ports = ("true", "false")
    graph = WorkflowGraph(
        id="workflow-branching",
        nodes=[
            NodeInstance(id="start-1", type="start"),
            branch,
            NodeInstance(id="P", type="process", config={"transformationType": "merge"}),
            NodeInstance(id="F", type="filter", config={"filterConditions": "{}"}),
            NodeInstance(id="end-1", type="end"),
        ],
    )
    store = GraphStore(graph, registry)
    assert store.add_edge("start-1", "branch").accepted
    assert store.add_edge("branch", "P", source_handle=ports[0]).accepted
    assert store.add_edge("branch", "F", source_handle=ports[1]).accepted
    assert store.add_edge("P", "end-1").accepted
    assert store.add_edge("F", "end-1").accepted
    return store


# === SUCCESSFUL RUNS ===


class TestSuccessfulRun:
    @pytest.mark.asyncio
    async def test_end_to_end_pipeline(self, pipeline_store, fast_config):
        history = record_transitions(pipeline_store)
        controller = ExecutionController(pipeline_store, config=fast_config)

        result = await controller.run()

        assert result.success
        assert result.path == ["A", "B"]
        assert result.order == ["A", "B", "end-1"]
        for node_id in ("A", "B"):
            assert history[node_id] == [("idle", 0), *PROCESSING_TICKS, ("completed", 100)]
        assert pipeline_store.status == WorkflowStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_b_starts_only_after_a_completes(self, pipeline_store, fast_config):
        timeline = []

        def listener(graph):
            a = graph.get_node("A").status
            b = graph.get_node("B").status
            timeline.append((a, b))

        pipeline_store.subscribe(listener)
        await ExecutionController(pipeline_store, config=fast_config).run()

        for a, b in timeline:
            if b != NodeStatus.IDLE:
                assert a == NodeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_progress_is_monotonic(self, registry, fast_config):
        store = three_step_store(registry)
        fast_config.progress_step = 7
        history = record_transitions(store)

        await ExecutionController(store, config=fast_config).run()

        for node_id in ("A", "B", "C"):
            progress = [p for status, p in history[node_id] if status == "processing"]
            assert progress == sorted(progress)
            assert progress[-1] == 100
            assert history[node_id][-1] == ("completed", 100)

    @pytest.mark.asyncio
    async def test_control_nodes_stay_idle(self, pipeline_store, fast_config):
        await ExecutionController(pipeline_store, config=fast_config).run()
        graph = pipeline_store.snapshot()
        assert graph.get_node("start-1").status == NodeStatus.IDLE
        assert graph.get_node("end-1").status == NodeStatus.IDLE

    @pytest.mark.asyncio
    async def test_rerun_resets_previous_statuses(self, pipeline_store, fast_config):
        controller = ExecutionController(pipeline_store, config=fast_config)
        await controller.run()
        history = record_transitions(pipeline_store)

        result = await controller.run()

        assert result.success
        assert history["A"][:2] == [("completed", 100), ("idle", 0)]

    @pytest.mark.asyncio
    async def test_step_runner_is_awaited_per_step(self, pipeline_store, fast_config):
        ran = []

        async def runner(node: NodeInstance) -> None:
            ran.append(node.id)

        controller = ExecutionController(pipeline_store, config=fast_config, step_runner=runner)
        await controller.run()

        assert ran == ["A", "B"]

    @pytest.mark.asyncio
    async def test_lifecycle_events(self, pipeline_store, fast_config):
        bus = EventBus()
        controller = ExecutionController(pipeline_store, config=fast_config, event_bus=bus)

        result = await controller.run()

        types = [e.type for e in bus.get_history()]
        assert types[0] == EventType.EXECUTION_STARTED
        assert types[-1] == EventType.EXECUTION_COMPLETED
        completed = [
            e.node_id
            for e in bus.get_history(EventType.NODE_STATUS_CHANGED)
            if e.data["status"] == "completed"
        ]
        assert completed == ["A", "B"]
        assert all(e.run_id == result.run_id for e in bus.get_history()[1:])


    @pytest.mark.asyncio
    async def test_progress_is_logged_with_extra_fields(self, pipeline_store, fast_config, caplog):
        caplog.set_level(logging.DEBUG, logger="flowforge.runtime.controller")

        await ExecutionController(pipeline_store, config=fast_config).run()

        tagged = [r for r in caplog.records if getattr(r, "event", None) is not None]
        progress = [r.progress for r in tagged if r.event == EventType.NODE_PROGRESS]
        assert progress == [20, 40, 60, 80, 100] * 2
        assert tagged[0].event == EventType.EXECUTION_STARTED
        assert tagged[-1].event == EventType.EXECUTION_COMPLETED
        completed = [r for r in tagged if getattr(r, "status", None) == NodeStatus.COMPLETED]
        assert len(completed) == 2


class TestBranchingRun:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("switch", [False, True])
    async def test_every_branch_runs_in_planned_order(self, registry, fast_config, switch):
        store = branching_store(registry, switch=switch)
        history = record_transitions(store)

        result = await ExecutionController(store, config=fast_config).run()

        assert result.success
        assert result.order == ["branch", "P", "end-1", "F"]
        assert result.path == ["branch", "P", "F"]
        graph = store.snapshot()
        for node_id in result.path:
            assert graph.get_node(node_id).status == NodeStatus.COMPLETED
            assert history[node_id][-1] == ("completed", 100)
        assert graph.get_node("end-1").status == NodeStatus.IDLE
        assert history["end-1"] == [("idle", 0)]

    @pytest.mark.asyncio
    async def test_each_step_starts_after_the_previous_completes(self, registry, fast_config):
        store = branching_store(registry)
        started: list[str] = []
        previous_at_start: list[NodeStatus] = []

        def listener(graph):
            for node in graph.nodes:
                if node.status == NodeStatus.PROCESSING and node.id not in started:
                    if started:
                        previous_at_start.append(graph.get_node(started[-1]).status)
                    started.append(node.id)

        store.subscribe(listener)
        result = await ExecutionController(store, config=fast_config).run()

        assert result.success
        assert started == ["branch", "P", "F"]
        assert previous_at_start == [NodeStatus.COMPLETED, NodeStatus.COMPLETED]


# === REFUSALS ===


class TestRefusal:
    @pytest.mark.asyncio
    async def test_missing_end_node(self, registry, fast_config):
        graph = make_graph([("A", "dataSource", {"sourceType": "csv"})], with_end=False)
        store = GraphStore(graph, registry)
        version = store.version

        result = await ExecutionController(store, config=fast_config).run()

        assert not result.success
        assert result.refused
        assert any("must have an end node" in e for e in result.errors)
        assert all(n.status == NodeStatus.IDLE for n in store.snapshot().nodes)
        assert store.version == version

    @pytest.mark.asyncio
    async def test_unconfigured_step(self, registry, fast_config):
        store = GraphStore(make_graph([("A", "dataSource", {})]), registry)
        bus = EventBus()

        result = await ExecutionController(store, config=fast_config, event_bus=bus).run()

        assert result.refused
        assert result.errors == ["1 node(s) need configuration"]
        refused = bus.get_history(EventType.EXECUTION_REFUSED)
        assert refused[0].data["errors"] == result.errors

    @pytest.mark.asyncio
    async def test_second_run_refused_while_running(self, pipeline_store, fast_config):
        release = asyncio.Event()

        async def runner(node: NodeInstance) -> None:
            await release.wait()

        controller = ExecutionController(pipeline_store, config=fast_config, step_runner=runner)
        task = asyncio.create_task(controller.run())
        while controller.current_node_id is None:
            await asyncio.sleep(0)

        second = await controller.run()
        release.set()
        first = await task

        assert second.refused
        assert second.errors == ["Workflow is already running"]
        assert first.success

    def test_check_returns_planned_order(self, pipeline_store, fast_config):
        checked = ExecutionController(pipeline_store, config=fast_config).check()
        assert checked.success
        assert checked.order == ["A", "B", "end-1"]


# === STOP ===


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_mid_step(self, registry, fast_config):
        store = three_step_store(registry)
        controller = ExecutionController(store, config=fast_config)
        history = record_transitions(store)

        def stop_at_b_40(graph):
            b = graph.get_node("B")
            if b.status == NodeStatus.PROCESSING and b.progress == 40:
                controller.stop()

        store.subscribe(stop_at_b_40)
        result = await controller.run()

        assert result.stopped
        assert not result.success
        assert result.errors == ["Workflow execution stopped"]
        assert result.path == ["A"]

        graph = store.snapshot()
        assert graph.get_node("A").status == NodeStatus.COMPLETED
        b = graph.get_node("B")
        assert (b.status, b.progress) == (NodeStatus.IDLE, 0)
        assert history["C"] == [("idle", 0)]
        assert store.status == WorkflowStatus.DRAFT

    @pytest.mark.asyncio
    async def test_stop_during_hold(self, pipeline_store, fast_config):
        fast_config.tick_interval = 0.001
        fast_config.step_durations = {"dataSource": 10}
        controller = ExecutionController(pipeline_store, config=fast_config)
        task = asyncio.create_task(controller.run())

        while pipeline_store.get_node("A").progress < 100:
            await asyncio.sleep(0.001)
        assert controller.stop()
        result = await asyncio.wait_for(task, timeout=5)

        assert result.stopped
        assert pipeline_store.get_node("A").status == NodeStatus.IDLE
        assert pipeline_store.get_node("B").status == NodeStatus.IDLE

    def test_stop_without_run(self, pipeline_store, fast_config):
        assert not ExecutionController(pipeline_store, config=fast_config).stop()

    @pytest.mark.asyncio
    async def test_stop_event_published(self, registry, fast_config):
        store = three_step_store(registry)
        bus = EventBus()
        controller = ExecutionController(store, config=fast_config, event_bus=bus)

        async def stop_on_first_progress(event):
            controller.stop()

        bus.subscribe(event_types=[EventType.NODE_PROGRESS], handler=stop_on_first_progress)
        result = await controller.run()

        assert result.stopped
        stopped = bus.get_history(EventType.EXECUTION_STOPPED)
        assert len(stopped) == 1
        assert stopped[0].data["completed"] == []


# === FAULTS ===


class TestExecutionFault:
    @pytest.mark.asyncio
    async def test_failing_step(self, registry, fast_config):
        store = three_step_store(registry)

        async def runner(node: NodeInstance) -> None:
            if node.id == "B":
                raise RuntimeError("ERP connection refused")

        bus = EventBus()
        controller = ExecutionController(
            store, config=fast_config, event_bus=bus, step_runner=runner
        )
        result = await controller.run()

        assert not result.success
        assert not result.refused
        assert result.failed_node == "B"
        assert result.errors == ["ERP connection refused"]
        assert result.path == ["A"]

        graph = store.snapshot()
        b = graph.get_node("B")
        assert b.status == NodeStatus.ERROR
        assert b.error_message == "ERP connection refused"
        assert graph.get_node("C").status == NodeStatus.IDLE
        assert store.status == WorkflowStatus.ERROR

        failed = bus.get_history(EventType.EXECUTION_FAILED)
        assert failed[0].data["node_id"] == "B"

    @pytest.mark.asyncio
    async def test_controller_usable_after_fault(self, pipeline_store, fast_config):
        attempts = []

        async def flaky(node: NodeInstance) -> None:
            attempts.append(node.id)
            if len(attempts) == 1:
                raise RuntimeError("transient")

        controller = ExecutionController(pipeline_store, config=fast_config, step_runner=flaky)
        assert not (await controller.run()).success
        assert not controller.is_running

        retry = await controller.run()
        assert retry.success
        assert pipeline_store.get_node("A").error_message is None
