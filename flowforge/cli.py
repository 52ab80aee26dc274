"""
Command-line interface for flowforge.

Usage:
    flowforge validate my-workflow.json
    flowforge plan my-workflow.json
    flowforge run my-workflow.json --tick-ms 50
    flowforge run my-workflow.json --definitions custom-nodes.json
    flowforge types --definitions custom-nodes.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from flowforge.config import ExecutionConfig, get_log_format, get_log_level
from flowforge.editor import WorkflowEditor
from flowforge.errors import NoStartNodeError, ParseError
from flowforge.graph.planner import RunOrderPlanner
from flowforge.graph.registry import NodeTypeRegistry
from flowforge.graph.validator import WorkflowValidator
from flowforge.graph.workflow import WorkflowGraph
from flowforge.observability import configure_logging
from flowforge.runtime.event_bus import EventBus, EventType, WorkflowEvent
from flowforge.storage.snapshot import import_snapshot

logger = logging.getLogger(__name__)


def _load_registry(definitions: str | None) -> NodeTypeRegistry:
    registry = NodeTypeRegistry()
    if definitions:
        registry.load_definitions(Path(definitions).read_text(encoding="utf-8"))
    return registry


def _load_workflow(path: str) -> WorkflowGraph:
    return import_snapshot(Path(path).read_text(encoding="utf-8"))


def cmd_validate(args: argparse.Namespace) -> int:
    """Check a workflow file and print every problem found."""
    try:
        registry = _load_registry(args.definitions)
        graph = _load_workflow(args.file)
    except (OSError, ParseError) as e:
        _print_load_error(e)
        return 1

    validator = WorkflowValidator(registry, require_end_node=ExecutionConfig().require_end_node)
    result = validator.validate(graph)
    if result.valid:
        counts = f"{len(graph.nodes)} nodes, {len(graph.edges)} connections"
        print(f"✓ {graph.name} is valid ({counts})")
        return 0

    print(f"✗ {graph.name} is not runnable:")
    for error in result.errors:
        print(f"  - {error}")
    if result.unconfigured_nodes:
        print(f"  Unconfigured: {', '.join(result.unconfigured_nodes)}")
    return 1


def cmd_plan(args: argparse.Namespace) -> int:
    """Print the run order of a workflow file."""
    try:
        graph = _load_workflow(args.file)
        order = RunOrderPlanner().plan(graph)
    except (OSError, ParseError, NoStartNodeError) as e:
        _print_load_error(e)
        return 1

    if args.json:
        print(json.dumps(order))
        return 0
    for index, node_id in enumerate(order, start=1):
        node = graph.get_node(node_id)
        label = node.label if node else node_id
        print(f"{index:>3}. {label} [{node_id}]")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Run a workflow file with the simulated runner."""
    try:
        registry = _load_registry(args.definitions)
        graph = _load_workflow(args.file)
    except (OSError, ParseError) as e:
        _print_load_error(e)
        return 1

    config = ExecutionConfig()
    if args.tick_ms is not None:
        config.tick_interval = args.tick_ms / 1000
    if args.fast:
        config.tick_interval = 0
        config.step_durations = {}
        config.default_step_duration = 0

    bus = EventBus()
    editor = WorkflowEditor(registry=registry, config=config, event_bus=bus, graph=graph)

    async def on_status(event: WorkflowEvent) -> None:
        status = event.data.get("status")
        node = editor.store.get_node(event.node_id) if event.node_id else None
        label = node.label if node else event.node_id
        if status == "processing":
            print(f"  ▶ {label}")
        elif status == "completed":
            print(f"  ✓ {label}")
        elif status == "error":
            print(f"  ✗ {label}: {event.data.get('error_message')}")

    bus.subscribe(event_types=[EventType.NODE_STATUS_CHANGED], handler=on_status)

    async def _run():
        task = asyncio.create_task(editor.run())
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            editor.stop()
            return await task

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 1

    if result.success:
        print(f"✓ Workflow executed successfully ({len(result.path)} steps)")
        return 0
    if result.refused:
        print("✗ Run refused:")
        for error in result.errors:
            print(f"  - {error}")
        return 1
    print(f"✗ {result.error}")
    return 1


def cmd_types(args: argparse.Namespace) -> int:
    """List the node types known to the registry."""
    try:
        registry = _load_registry(args.definitions)
    except (OSError, ParseError) as e:
        _print_load_error(e)
        return 1

    if args.json:
        print(registry.export_definitions())
        return 0
    for definition in registry.list_definitions():
        ports = ""
        if definition.multiple_outputs:
            ports = " (ports: dynamic)"
        elif definition.outputs:
            ports = f" (ports: {', '.join(definition.outputs)})"
        print(f"{definition.type:<16} {definition.category:<10} {definition.label}{ports}")
    return 0


def _print_load_error(error: Exception) -> None:
    print(f"Error: {error}", file=sys.stderr)
    for detail in getattr(error, "errors", [])[1:]:
        print(f"  - {detail}", file=sys.stderr)


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    validate_parser = subparsers.add_parser("validate", help="Check a workflow file")
    validate_parser.add_argument("file", help="Workflow snapshot (JSON)")
    validate_parser.add_argument("--definitions", help="Extra node definitions (JSON)")
    validate_parser.set_defaults(func=cmd_validate)

    plan_parser = subparsers.add_parser("plan", help="Print the run order of a workflow")
    plan_parser.add_argument("file", help="Workflow snapshot (JSON)")
    plan_parser.add_argument("--json", action="store_true", help="Print the order as JSON")
    plan_parser.set_defaults(func=cmd_plan)

    run_parser = subparsers.add_parser("run", help="Run a workflow with the simulated runner")
    run_parser.add_argument("file", help="Workflow snapshot (JSON)")
    run_parser.add_argument("--tick-ms", type=int, help="Progress tick interval in milliseconds")
    run_parser.add_argument("--definitions", help="Extra node definitions (JSON)")
    run_parser.add_argument(
        "--fast", action="store_true", help="Skip simulated delays (no ticks, zero durations)"
    )
    run_parser.set_defaults(func=cmd_run)

    types_parser = subparsers.add_parser("types", help="List available node types")
    types_parser.add_argument("--definitions", help="Extra node definitions (JSON)")
    types_parser.add_argument("--json", action="store_true", help="Print as a definition feed")
    types_parser.set_defaults(func=cmd_types)


def main():
    parser = argparse.ArgumentParser(
        prog="flowforge",
        description="flowforge - Build, check and run workflow graphs",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args()
    configure_logging(level=args.log_level or get_log_level(), format=get_log_format())

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
