"""
Run-Order Planner - derives the order in which steps execute.

The walk starts at the start node and follows outgoing edges depth-first in
edge insertion order. For the usual linear chain this is a simple walk along
the single outgoing edge of each node; for conditional/switch nodes every
output port is explored in turn. A ``visited`` set guarantees each node id
appears once, even if an accidental cycle slipped into the graph.

The start node itself is not part of the order; the end node is.
"""

import logging

from flowforge.errors import NoStartNodeError
from flowforge.graph.workflow import WorkflowGraph

logger = logging.getLogger(__name__)


class RunOrderPlanner:
    """Pure function object: ``plan(graph)`` has no side effects."""

    def plan(self, graph: WorkflowGraph) -> list[str]:
        """
        Compute the run order for a graph snapshot.

        Raises:
            NoStartNodeError: If the graph has no start node.
        """
        start = graph.get_start_node()
        if start is None:
            raise NoStartNodeError()

        order: list[str] = []
        visited: set[str] = set()
        # explicit stack instead of recursion; reversed so the first edge is
        # explored first
        stack = [start.id]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            if node_id != start.id:
                order.append(node_id)

            outgoing = graph.get_outgoing_edges(node_id)
            for edge in reversed(outgoing):
                if edge.target not in visited and graph.get_node(edge.target) is not None:
                    stack.append(edge.target)

        logger.debug(f"Planned run order for '{graph.id}': {order}")
        return order
