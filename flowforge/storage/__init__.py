"""Persistence: the snapshot codec and the file-backed workflow library."""

from flowforge.storage.snapshot import export_snapshot, import_snapshot
from flowforge.storage.workflow_library import WorkflowLibrary

__all__ = ["export_snapshot", "import_snapshot", "WorkflowLibrary"]
