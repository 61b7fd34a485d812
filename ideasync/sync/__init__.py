"""Synchronization of locally cached projects and ideas with a remote store.

Reconciliation is last-write-wins on ``updated_at`` with whole-record
replacement; ties keep the local copy.
"""

from .merge import MergeEngine, MergeOutcome, SyncIssue, SyncReport, SyncStatus
from .orchestrator import SyncOrchestrator, SyncRunReport, SyncRunResult, SyncState
from .schema import EntitySchema, IdeaSchema, ProjectSchema

__all__ = [
    "EntitySchema",
    "IdeaSchema",
    "MergeEngine",
    "MergeOutcome",
    "ProjectSchema",
    "SyncIssue",
    "SyncOrchestrator",
    "SyncReport",
    "SyncRunReport",
    "SyncRunResult",
    "SyncState",
    "SyncStatus",
]
