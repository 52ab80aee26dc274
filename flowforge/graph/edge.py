"""
Edge Protocol - How nodes connect in a workflow.

Edges are directed links between two node ports. Most node types expose one
input and one output port, so their edges carry no handles. Multi-port types
(conditional, switch) name the output port an edge leaves from in
``source_handle``.

Edges are only created through the connection validator; see
``flowforge.graph.validator.ConnectionValidator``.
"""

from pydantic import BaseModel, Field


def default_edge_id(source: str, target: str) -> str:
    """Conventional edge id. Callers must still treat ids as opaque."""
    return f"{source}-{target}"


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Plain linear step
        EdgeSpec(id="start-1-dataSource-1a2b3c4d", source="start-1",
                 target="dataSource-1a2b3c4d")

        # Branch leaving the "true" port of a conditional
        EdgeSpec(
            id="conditional-9f8e7d6c-filter-0a1b2c3d",
            source="conditional-9f8e7d6c",
            target="filter-0a1b2c3d",
            source_handle="true",
        )
    """

    id: str
    source: str = Field(description="Source node ID")
    target: str = Field(description="Target node ID")

    source_handle: str | None = Field(default=None, description="Named output port")
    target_handle: str | None = Field(default=None, description="Named input port")

    # Presentation only (e.g. "smoothstep")
    type: str | None = None

    model_config = {"extra": "allow"}

    def touches(self, node_id: str) -> bool:
        """True if either endpoint is ``node_id``."""
        return self.source == node_id or self.target == node_id
