"""
Workflow Definition Schema - the persisted/exported shape of a workflow.

This is the only serialization format flowforge reads or writes:

    {
      "id": "workflow-...",
      "name": "Inventory sync",
      "description": "",
      "version": 7,
      "nodes": [
        {"id": "start-1", "type": "start", "position": {"x": 50, "y": 200},
         "data": {"label": "Start", "config": {}}}
      ],
      "connections": [
        {"id": "start-1-dataSource-1a2b3c4d", "source": "start-1",
         "target": "dataSource-1a2b3c4d", "sourceHandle": null}
      ],
      "metadata": {"created": "...", "modified": "...", "author": null, "tags": []}
    }
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_WIRE_CONFIG = {"populate_by_name": True, "alias_generator": to_camel, "extra": "allow"}


class WirePosition(BaseModel):
    x: float = 0.0
    y: float = 0.0


class WorkflowNodeData(BaseModel):
    """Per-node payload stored under ``data``."""

    label: str = ""
    description: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    custom_config: dict[str, Any] | None = None
    status: str = "idle"
    progress: int = Field(default=0, ge=0, le=100)
    error_message: str | None = None

    model_config = _WIRE_CONFIG


class WorkflowNodeInstance(BaseModel):
    id: str
    type: str
    position: WirePosition = Field(default_factory=WirePosition)
    data: WorkflowNodeData = Field(default_factory=WorkflowNodeData)
    style: dict[str, Any] | None = None

    model_config = _WIRE_CONFIG


class WorkflowConnection(BaseModel):
    id: str
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    type: str | None = None
    style: dict[str, Any] | None = None

    model_config = _WIRE_CONFIG


class WorkflowMetadata(BaseModel):
    created: datetime | None = None
    modified: datetime | None = None
    author: str | None = None
    tags: list[str] = Field(default_factory=list)

    model_config = _WIRE_CONFIG


class WorkflowDefinition(BaseModel):
    """Complete exported workflow."""

    id: str
    name: str = "Untitled Workflow"
    description: str = ""
    # Older exports carry a semantic version string instead of a revision counter
    version: int | str = 1
    nodes: list[WorkflowNodeInstance] = Field(default_factory=list)
    connections: list[WorkflowConnection] = Field(default_factory=list)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    model_config = _WIRE_CONFIG
