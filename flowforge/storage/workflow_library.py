"""
Workflow Library - saved workflows in a single JSON file.

Layout of the library file:
  {
    "workflows": {
      "<workflow id>": { ...snapshot document... },
      ...
    }
  }

Saving a workflow whose id is already present overwrites it (last write wins).
Every write replaces the whole file atomically.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from flowforge.errors import ParseError
from flowforge.graph.registry import format_validation_errors
from flowforge.graph.workflow import WorkflowGraph
from flowforge.schemas.workflow_definition import WorkflowDefinition
from flowforge.storage.snapshot import definition_to_graph, graph_to_definition
from flowforge.utils.io import atomic_write

logger = logging.getLogger(__name__)


class WorkflowLibrary:
    """
    File-backed collection of workflow snapshots keyed by workflow id.

    Example:
        library = WorkflowLibrary(Path("~/.flowforge/workflows.json").expanduser())
        library.save(store.snapshot())
        graph = library.load(workflow_id)
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ParseError(f"Workflow library {self.path} is corrupt: {e}") from e
        workflows = data.get("workflows") if isinstance(data, dict) else None
        if not isinstance(workflows, dict):
            raise ParseError(f"Workflow library {self.path} has no 'workflows' mapping")
        return workflows

    def _write(self, workflows: dict[str, dict]) -> None:
        with atomic_write(self.path) as f:
            json.dump({"workflows": workflows}, f, indent=2)

    def save(self, graph: WorkflowGraph) -> None:
        """Save (or overwrite) a workflow under its id."""
        workflows = self._read()
        document = graph_to_definition(graph).model_dump(mode="json", by_alias=True)
        replaced = graph.id in workflows
        workflows[graph.id] = document
        self._write(workflows)
        logger.debug(f"{'Replaced' if replaced else 'Saved'} workflow {graph.id} in {self.path}")

    def load(self, workflow_id: str) -> WorkflowGraph | None:
        """
        Load a workflow by id.

        Returns:
            The workflow graph, or None if the library has no such id.

        Raises:
            ParseError: If the stored document is not a valid workflow.
        """
        document = self._read().get(workflow_id)
        if document is None:
            return None
        try:
            definition = WorkflowDefinition.model_validate(document)
        except ValidationError as e:
            raise ParseError(
                f"Stored workflow {workflow_id} is invalid", format_validation_errors(e)
            ) from e
        return definition_to_graph(definition)

    def list(self) -> list[dict]:
        """Summaries of every saved workflow, sorted by name."""
        summaries = []
        for workflow_id, document in self._read().items():
            summaries.append(
                {
                    "id": workflow_id,
                    "name": document.get("name", ""),
                    "description": document.get("description", ""),
                    "node_count": len(document.get("nodes", [])),
                    "modified": (document.get("metadata") or {}).get("modified"),
                }
            )
        return sorted(summaries, key=lambda s: (s["name"], s["id"]))

    def delete(self, workflow_id: str) -> bool:
        """Delete a saved workflow. Returns False if it was not present."""
        workflows = self._read()
        if workflows.pop(workflow_id, None) is None:
            return False
        self._write(workflows)
        logger.debug(f"Deleted workflow {workflow_id} from {self.path}")
        return True

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._read()
