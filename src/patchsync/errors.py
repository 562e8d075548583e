"""Exceptions raised across patchsync components."""

from typing import Optional


class PatchSyncError(Exception):
    """Base exception for all patchsync failures."""
    pass


class ConfigError(PatchSyncError):
    """Raised when configuration is missing or invalid."""
    pass


class ProcessError(PatchSyncError):
    """Raised when the version-control tool fails or reports diagnostics."""

    def __init__(self, message: str, diagnostics: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.returncode = returncode


class NetworkError(PatchSyncError):
    """Raised when a request gets no response from the object store."""
    pass


class RemoteError(PatchSyncError):
    """Raised when the object store answers with a non-2xx status.

    The message is the provider's response text, unmodified.
    """

    def __init__(self, message: str, status: int, method: str = "", key: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.method = method
        self.key = key
