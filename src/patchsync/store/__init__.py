"""Object store package for patch exchange."""

from .base import BaseObjectStore, RemoteObject
from .keys import KeyExtractor, TagScanKeyExtractor
from .s3_client import ObjectStoreClient
from .memory import InMemoryObjectStore
from .factory import ObjectStoreFactory

__all__ = [
    # Base classes
    "BaseObjectStore",
    "RemoteObject",

    # List parsing
    "KeyExtractor",
    "TagScanKeyExtractor",

    # Store implementations
    "ObjectStoreClient",
    "InMemoryObjectStore",

    # Factory
    "ObjectStoreFactory"
]
