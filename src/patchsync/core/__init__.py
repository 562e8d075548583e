"""Core workflow orchestration package."""

from .sync_engine import (
    SyncOrchestrator,
    SyncResult,
    SyncTask,
    TaskState,
    Workflow,
    CompletionCallback
)

__all__ = [
    "SyncOrchestrator",
    "SyncResult",
    "SyncTask",
    "TaskState",
    "Workflow",
    "CompletionCallback"
]
