"""Version-control collaborator and patch helpers."""

from .base import VersionControl, CommandOutput
from .git import GitCollaborator
from .runner import DiffRunner, PatchApplier, PatchBlob

__all__ = [
    "VersionControl",
    "CommandOutput",
    "GitCollaborator",
    "DiffRunner",
    "PatchApplier",
    "PatchBlob"
]
