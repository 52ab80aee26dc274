"""Exceptions raised inside flowforge.

Most failures in the editor surface as result values (``MutationResult``,
``ValidationResult``, ``RunResult``). The exceptions here are raised by the
lower layers and converted to values at the editor/controller boundary.
"""


class WorkflowError(Exception):
    """Base class for flowforge errors."""


class ParseError(WorkflowError, ValueError):
    """A workflow snapshot or node-definition document could not be parsed."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or [message]


class ExecutionFault(WorkflowError):
    """A step failed while the controller was executing it."""

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id


class NoStartNodeError(WorkflowError):
    """The graph has no start node, so no run order can be derived."""

    def __init__(self, message: str = "Workflow must have a start node"):
        super().__init__(message)
