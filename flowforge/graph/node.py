"""
Node Protocol - The typed steps of a workflow.

A node is pure data: its ``type`` is a key into the node-type registry, which
decides which configuration fields exist and whether the node still needs
configuration. There is no per-type class hierarchy.

Status lifecycle (driven only by the execution controller):

    idle → processing → completed
                      ↘ error
    processing → idle   (stop requested)
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

START_NODE_TYPE = "start"
END_NODE_TYPE = "end"
CONTROL_NODE_TYPES = frozenset({START_NODE_TYPE, END_NODE_TYPE})

# Keys in a saved configuration that also rename the node
LABEL_OVERRIDE_KEY = "stepName"
DESCRIPTION_OVERRIDE_KEY = "description"


class NodeStatus(StrEnum):
    """Execution status of a single node."""

    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Position(BaseModel):
    """Canvas coordinate. Only the rendering layer cares about it."""

    x: float = 0.0
    y: float = 0.0


class NodeInstance(BaseModel):
    """
    A single step in a workflow graph.

    Example:
        NodeInstance(
            id="dataSource-1a2b3c4d",
            type="dataSource",
            label="Pull inventory data from ERP",
            config={"sourceType": "netsuite"},
        )
    """

    id: str
    type: str
    label: str = ""
    description: str = ""
    position: Position = Field(default_factory=Position)

    status: NodeStatus = NodeStatus.IDLE
    progress: int = Field(default=0, ge=0, le=100, description="Meaningful while processing")
    error_message: str | None = Field(default=None, description="Set only while status=error")

    config: dict[str, Any] = Field(default_factory=dict)
    custom_config: dict[str, Any] | None = Field(
        default=None, description="Configuration carried by custom (feed-defined) node kinds"
    )

    model_config = {"extra": "allow"}

    @property
    def is_control(self) -> bool:
        """True for the reserved start/end nodes."""
        return self.type in CONTROL_NODE_TYPES
