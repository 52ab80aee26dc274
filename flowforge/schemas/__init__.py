"""Wire schemas: node-definition feeds and exported workflow documents."""

from flowforge.schemas.node_definition import (
    FieldOption,
    FieldValidation,
    NodeAction,
    NodeDefinition,
    NodeDefinitionFeed,
    NodeFieldConfig,
)
from flowforge.schemas.workflow_definition import (
    WirePosition,
    WorkflowConnection,
    WorkflowDefinition,
    WorkflowMetadata,
    WorkflowNodeData,
    WorkflowNodeInstance,
)

__all__ = [
    # Node definitions
    "FieldOption",
    "FieldValidation",
    "NodeAction",
    "NodeDefinition",
    "NodeDefinitionFeed",
    "NodeFieldConfig",
    # Workflow documents
    "WirePosition",
    "WorkflowConnection",
    "WorkflowDefinition",
    "WorkflowMetadata",
    "WorkflowNodeData",
    "WorkflowNodeInstance",
]
