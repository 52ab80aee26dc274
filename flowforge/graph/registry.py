"""
Node-Type Registry - maps a node's type to its definition.

Node behavior is data, not code: the registry answers which configuration
fields a type exposes, whether it has several named output ports, how long
the simulated runner spends on it, and whether a given node instance still
needs configuration.

Definitions can be extended at runtime from an external feed:

    registry = NodeTypeRegistry()
    registry.load_definitions(Path("node-definitions.json").read_text())
    registry.resolve("customDataSource")  # -> list[NodeFieldConfig]
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from flowforge.config import ExecutionConfig
from flowforge.errors import ParseError
from flowforge.graph.builtin_types import BUILTIN_DEFINITIONS
from flowforge.graph.node import CONTROL_NODE_TYPES, NodeInstance
from flowforge.schemas.node_definition import (
    NodeDefinition,
    NodeDefinitionFeed,
    NodeFieldConfig,
)

logger = logging.getLogger(__name__)

SWITCH_CASE_HANDLE = re.compile(r"^case-\d+$")


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``path: message`` strings."""
    errors = []
    for item in error.errors():
        field_path = ".".join(str(loc) for loc in item["loc"]) or "root"
        errors.append(f"{field_path}: {item['msg']}")
    return errors


class NodeTypeRegistry:
    """
    Registry of node definitions keyed by node type.

    ``start`` and ``end`` are always present and can never be replaced; they
    resolve to an empty field schema and never need configuration.
    """

    def __init__(self, definitions: list[NodeDefinition] | None = None):
        self._definitions: dict[str, NodeDefinition] = {}
        for definition in BUILTIN_DEFINITIONS:
            self._definitions[definition.type] = definition
        if definitions:
            self.register(definitions)

    # === LOOKUP ===

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._definitions

    def get_definition(self, node_type: str) -> NodeDefinition | None:
        return self._definitions.get(node_type)

    def list_definitions(self) -> list[NodeDefinition]:
        """All definitions in registration order."""
        return list(self._definitions.values())

    def resolve(self, node_type: str) -> list[NodeFieldConfig] | None:
        """Field schema for ``node_type``; None if the type is unknown."""
        if node_type in CONTROL_NODE_TYPES:
            return []
        definition = self._definitions.get(node_type)
        if definition is None:
            return None
        return list(definition.config_fields)

    def is_configured(self, node: NodeInstance) -> bool:
        """True if the node has at least one config (or custom config) key."""
        if node.type in CONTROL_NODE_TYPES:
            return True
        return bool(node.config) or bool(node.custom_config)

    def is_multi_port(self, node_type: str) -> bool:
        """True for types whose output ports each admit their own connection."""
        definition = self._definitions.get(node_type)
        return definition is not None and definition.is_multi_port

    def has_output_port(self, node_type: str, handle: str | None) -> bool:
        """
        True if ``handle`` names an output port of ``node_type``.

        Only multi-port types declare ports; any handle is accepted for the
        rest. Fixed ports come from ``outputs``; types with per-instance ports
        (switch) accept ``case-<n>`` handles.
        """
        definition = self._definitions.get(node_type)
        if definition is None or not definition.is_multi_port:
            return True
        if handle is None:
            return False
        if handle in definition.outputs:
            return True
        return definition.multiple_outputs and SWITCH_CASE_HANDLE.match(handle) is not None

    def default_label(self, node_type: str) -> str:
        definition = self._definitions.get(node_type)
        return definition.label if definition else node_type

    def default_description(self, node_type: str) -> str:
        definition = self._definitions.get(node_type)
        return definition.description if definition else ""

    def step_duration(self, node_type: str, config: ExecutionConfig | None = None) -> float:
        """
        Simulated run time in seconds for a step of ``node_type``.

        A definition's ``executionTimeMs`` wins; otherwise the duration comes
        from ``config`` (the per-type table, then its default).
        """
        definition = self._definitions.get(node_type)
        if definition is not None and definition.execution_time_ms is not None:
            return definition.execution_time_ms / 1000
        return (config or ExecutionConfig()).duration_for(node_type)

    # === REGISTRATION ===

    def register(self, definitions: list[NodeDefinition], replace: bool = False) -> list[str]:
        """
        Add or replace definitions.

        Args:
            definitions: Definitions to register; same type overwrites.
            replace: Drop every non-control definition first.

        Returns:
            Types that were registered. Definitions for ``start``/``end`` are
            ignored.
        """
        if replace:
            self._definitions = {
                t: d for t, d in self._definitions.items() if t in CONTROL_NODE_TYPES
            }

        registered = []
        for definition in definitions:
            if definition.type in CONTROL_NODE_TYPES:
                logger.warning(f"Ignoring definition for reserved node type '{definition.type}'")
                continue
            self._definitions[definition.type] = definition
            registered.append(definition.type)

        logger.debug(f"Registered node types: {registered}")
        return registered

    def load_definitions(self, text: str, replace: bool = False) -> list[str]:
        """
        Parse a ``{"nodeDefinitions": [...]}`` document and register it.

        The whole document is validated before anything is registered, so a
        malformed feed leaves the registry unchanged.

        Raises:
            ParseError: If the text is not JSON or does not match the schema.
        """
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("nodeDefinitions"), list):
            raise ParseError("Invalid node definitions JSON format")

        try:
            feed = NodeDefinitionFeed.model_validate(raw)
        except ValidationError as e:
            raise ParseError(
                "Invalid node definitions JSON format", format_validation_errors(e)
            ) from e

        types = [d.type for d in feed.node_definitions]
        duplicates = sorted({t for t in types if types.count(t) > 1})
        if duplicates:
            raise ParseError(f"Duplicate node types in feed: {duplicates}")

        registered = self.register(feed.node_definitions, replace=replace)
        logger.info(f"Loaded {len(registered)} node definitions")
        return registered

    def export_definitions(self) -> str:
        """Serialize every definition as a node-definition feed."""
        feed = NodeDefinitionFeed(node_definitions=self.list_definitions())
        return feed.model_dump_json(by_alias=True, indent=2, exclude_none=True)

    # === CONFIG VALUE CHECKS ===

    def validate_config(self, node_type: str, config: dict[str, Any]) -> list[str]:
        """
        Check ``config`` against the type's field schema.

        Returns:
            Human-readable problems (empty if the config is acceptable).
            Unknown types and control types have nothing to check.
        """
        fields = self.resolve(node_type)
        if not fields:
            return []

        errors = []
        for field in fields:
            value = config.get(field.name)
            if value is None or (isinstance(value, str) and value.strip() == ""):
                if field.required:
                    errors.append(f"{field.label} is required")
                continue
            errors.extend(self._check_field_value(field, value))
        return errors

    def _check_field_value(self, field: NodeFieldConfig, value: Any) -> list[str]:
        errors = []
        rule = field.validation

        if field.type == "number":
            try:
                number = float(value)
            except (TypeError, ValueError):
                return [f"{field.label} must be a number"]
            if rule and rule.min is not None and number < rule.min:
                errors.append(rule.message or f"{field.label} must be at least {rule.min:g}")
            if rule and rule.max is not None and number > rule.max:
                errors.append(rule.message or f"{field.label} must be at most {rule.max:g}")

        elif field.type == "select" and field.options:
            if str(value) not in {o.value for o in field.options}:
                errors.append(f"{field.label} has an unknown option '{value}'")

        elif field.type == "json" and isinstance(value, str):
            try:
                json.loads(value)
            except json.JSONDecodeError:
                errors.append(f"{field.label} must be valid JSON")

        if rule and rule.pattern and field.type in ("text", "textarea"):
            if not re.search(rule.pattern, str(value)):
                errors.append(rule.message or f"{field.label} format is invalid")

        return errors
