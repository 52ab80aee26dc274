"""
Event Bus - Pub/sub channel between the workflow core and its UI layer.

The core never stores UI callbacks inside node data. Instead it publishes:
- intents the UI should act on (configure/delete requested for a node)
- execution lifecycle events (run started, node status changes, run finished)

The UI subscribes to whichever types it renders.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # UI intents
    CONFIGURE_REQUESTED = "configure_requested"
    DELETE_REQUESTED = "delete_requested"

    # Editing feedback
    CONNECTION_REJECTED = "connection_rejected"
    WORKFLOW_LOADED = "workflow_loaded"

    # Execution lifecycle
    EXECUTION_REFUSED = "execution_refused"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_STOPPED = "execution_stopped"

    # Per-node execution
    NODE_STATUS_CHANGED = "node_status_changed"
    NODE_PROGRESS = "node_progress"

    # Custom events
    CUSTOM = "custom"


@dataclass
class WorkflowEvent:
    """An event about a workflow."""

    type: EventType
    workflow_id: str
    node_id: str | None = None  # Which node the event is about
    run_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "workflow_id": self.workflow_id,
            "node_id": self.node_id,
            "run_id": self.run_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[WorkflowEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_workflow: str | None = None  # Only receive events for this workflow
    filter_node: str | None = None  # Only receive events about this node


class EventBus:
    """
    Pub/sub event bus.

    Handlers for one event run concurrently; events themselves are delivered
    in publish order because ``publish`` awaits every handler before
    returning.

    Example:
        bus = EventBus()

        async def on_configure(event: WorkflowEvent):
            open_dialog(event.node_id, event.data["fields"])

        bus.subscribe(event_types=[EventType.CONFIGURE_REQUESTED], handler=on_configure)
    """

    def __init__(self, max_history: int = 1000):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[WorkflowEvent] = []
        self._max_history = max_history
        self._subscription_counter = 0

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_workflow: str | None = None,
        filter_node: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"

        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_workflow=filter_workflow,
            filter_node=filter_node,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns True if it existed."""
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    async def publish(self, event: WorkflowEvent) -> None:
        """Publish an event to all matching subscribers."""
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history :]

        matching_handlers = [
            s.handler for s in self._subscriptions.values() if self._matches(s, event)
        ]
        if matching_handlers:
            await self._execute_handlers(event, matching_handlers)

    def _matches(self, subscription: Subscription, event: WorkflowEvent) -> bool:
        """Check if a subscription matches an event."""
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_workflow and subscription.filter_workflow != event.workflow_id:
            return False
        if subscription.filter_node and subscription.filter_node != event.node_id:
            return False
        return True

    async def _execute_handlers(
        self,
        event: WorkflowEvent,
        handlers: list[EventHandler],
    ) -> None:
        """Execute handlers concurrently; a failing handler is logged, not raised."""

        async def run_handler(handler: EventHandler) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers])

    def get_history(
        self,
        event_type: EventType | None = None,
        node_id: str | None = None,
        limit: int | None = None,
    ) -> list[WorkflowEvent]:
        """Return past events, oldest first, optionally filtered."""
        events = [
            e
            for e in self._event_history
            if (event_type is None or e.type == event_type)
            and (node_id is None or e.node_id == node_id)
        ]
        return events[-limit:] if limit else events

    def clear_history(self) -> None:
        self._event_history.clear()

    # === CONVENIENCE PUBLISHERS ===

    async def emit_node_status(
        self,
        workflow_id: str,
        node_id: str,
        status: str,
        progress: int,
        run_id: str | None = None,
        error_message: str | None = None,
    ) -> None:
        """Emit a node status transition."""
        data: dict[str, Any] = {"status": status, "progress": progress}
        if error_message:
            data["error_message"] = error_message
        await self.publish(
            WorkflowEvent(
                type=EventType.NODE_STATUS_CHANGED,
                workflow_id=workflow_id,
                node_id=node_id,
                run_id=run_id,
                data=data,
            )
        )

    async def emit_node_progress(
        self,
        workflow_id: str,
        node_id: str,
        progress: int,
        run_id: str | None = None,
    ) -> None:
        """Emit a progress tick for a processing node."""
        await self.publish(
            WorkflowEvent(
                type=EventType.NODE_PROGRESS,
                workflow_id=workflow_id,
                node_id=node_id,
                run_id=run_id,
                data={"progress": progress},
            )
        )

    async def emit_execution_event(
        self,
        event_type: EventType,
        workflow_id: str,
        run_id: str | None = None,
        **data: Any,
    ) -> None:
        """Emit a run-level lifecycle event."""
        await self.publish(
            WorkflowEvent(type=event_type, workflow_id=workflow_id, run_id=run_id, data=data)
        )
