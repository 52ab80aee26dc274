"""Runtime: the execution controller and the event bus it reports through."""

from flowforge.runtime.controller import ExecutionController, RunResult, StepRunner
from flowforge.runtime.event_bus import EventBus, EventType, Subscription, WorkflowEvent

__all__ = [
    "ExecutionController",
    "RunResult",
    "StepRunner",
    "EventBus",
    "EventType",
    "Subscription",
    "WorkflowEvent",
]
