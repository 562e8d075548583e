"""patchsync: share selective working tree diffs through an S3-compatible bucket."""

__version__ = "0.3.0"

from .config import SyncConfig, load_config
from .core import SyncOrchestrator, SyncResult, TaskState
from .errors import (
    PatchSyncError,
    ConfigError,
    ProcessError,
    NetworkError,
    RemoteError
)
from .signing import SignatureSigner, Credentials
from .store import ObjectStoreClient, InMemoryObjectStore
from .vcs import DiffRunner, PatchApplier, GitCollaborator

__all__ = [
    "SyncConfig",
    "load_config",
    "SyncOrchestrator",
    "SyncResult",
    "TaskState",
    "PatchSyncError",
    "ConfigError",
    "ProcessError",
    "NetworkError",
    "RemoteError",
    "SignatureSigner",
    "Credentials",
    "ObjectStoreClient",
    "InMemoryObjectStore",
    "DiffRunner",
    "PatchApplier",
    "GitCollaborator"
]
