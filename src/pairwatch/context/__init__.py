"""Context tracking: snapshots, the tracker, the change differ and ingestion."""

from .differ import ChangeDiffer, describe_changes
from .ingest import ChangeIngestor, FileChangeEvent, build_change_description
from .models import BuildState, BuildStatus, ContextSnapshot
from .tracker import ContextTracker

__all__ = [
    "BuildState",
    "BuildStatus",
    "ChangeDiffer",
    "ChangeIngestor",
    "ContextSnapshot",
    "ContextTracker",
    "FileChangeEvent",
    "build_change_description",
    "describe_changes",
]
