"""
Node Definition Schema - Data-driven node types.

A NodeDefinition describes a kind of workflow step: which configuration
fields it exposes, which output ports it has and how long the simulated
runner spends on it. Built-in and externally supplied node kinds use the
same schema, so a custom node type is just another document.

Wire format (camelCase), as loaded from a definition feed:

    {
      "nodeDefinitions": [
        {
          "id": "custom-data-source",
          "type": "customDataSource",
          "label": "Custom Data Source",
          "description": "Connect to your custom data source",
          "icon": "Database",
          "color": "workflow-erp",
          "category": "source",
          "configFields": [
            {"name": "sourceUrl", "type": "text", "label": "Source URL", "required": true}
          ]
        }
      ]
    }
"""

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

FieldType = Literal["text", "textarea", "number", "select", "boolean", "switch", "json", "file"]
NodeCategory = Literal["source", "transform", "ai", "filter", "output", "control"]

_WIRE_CONFIG = {"populate_by_name": True, "alias_generator": to_camel, "extra": "allow"}


class FieldOption(BaseModel):
    """One choice of a ``select`` field."""

    value: str
    label: str

    model_config = _WIRE_CONFIG


class FieldValidation(BaseModel):
    """Value constraints checked when a configuration is saved with validation on."""

    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    message: str | None = None

    model_config = _WIRE_CONFIG


class NodeFieldConfig(BaseModel):
    """A single configuration field shown by the configuration dialog."""

    name: str
    type: FieldType
    label: str
    placeholder: str | None = None
    required: bool = False
    options: list[FieldOption] = Field(default_factory=list)
    validation: FieldValidation | None = None

    model_config = _WIRE_CONFIG


class NodeAction(BaseModel):
    """A toolbar action offered on a rendered node."""

    type: Literal["configure", "delete", "custom"]
    label: str
    icon: str | None = None
    handler: str | None = None
    color: str | None = None

    model_config = _WIRE_CONFIG


class NodeDefinition(BaseModel):
    """
    Specification of a node type.

    ``outputs`` lists fixed named output ports; ``multiple_outputs`` marks a
    type whose ports are created dynamically (e.g. switch cases). Either one
    makes the type multi-port for connection validation.
    """

    id: str
    type: str
    label: str
    description: str = ""
    icon: str = "Box"
    color: str = "primary"
    category: NodeCategory = "transform"
    config_fields: list[NodeFieldConfig] = Field(default_factory=list)
    actions: list[NodeAction] = Field(default_factory=list)
    style: dict[str, Any] = Field(default_factory=dict)

    outputs: list[str] = Field(default_factory=list, description="Named output ports")
    multiple_outputs: bool = Field(
        default=False, description="Ports are created per instance (switch cases)"
    )
    execution_time_ms: int | None = Field(
        default=None, ge=0, description="Simulated step duration override"
    )

    model_config = _WIRE_CONFIG

    @property
    def is_multi_port(self) -> bool:
        return self.multiple_outputs or len(self.outputs) > 1


class NodeDefinitionFeed(BaseModel):
    """Top-level document of an external node-definition feed."""

    node_definitions: list[NodeDefinition]

    model_config = _WIRE_CONFIG
