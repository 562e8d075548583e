"""Object store factory for creating store instances from a SyncConfig."""

from typing import Dict, List, Optional, Type

from .base import BaseObjectStore
from .memory import InMemoryObjectStore
from .s3_client import ObjectStoreClient
from ..config.schema import SyncConfig
from ..errors import ConfigError


class ObjectStoreFactory:
    """Factory for creating object store instances."""

    _store_classes: Dict[str, Type[BaseObjectStore]] = {
        "s3": ObjectStoreClient,
        "memory": InMemoryObjectStore,
    }

    # Memory stores live for the process so consecutive workflows share state.
    _memory_stores: Dict[str, InMemoryObjectStore] = {}

    @classmethod
    def create_store(cls, config: SyncConfig, store_type: Optional[str] = None) -> BaseObjectStore:
        """Create a store for one workflow.

        Args:
            config: Immutable workflow configuration
            store_type: Registered backend name, defaults to config.store_backend

        Returns:
            Store instance, to be used as an async context manager

        Raises:
            ConfigError: If the backend is unknown or required fields are missing
        """
        store_type = store_type or config.store_backend
        if store_type not in cls._store_classes:
            raise ConfigError(f"Unsupported store type: {store_type}")

        store_class = cls._store_classes[store_type]

        if issubclass(store_class, InMemoryObjectStore):
            bucket = config.bucket_name or "memory"
            if bucket not in cls._memory_stores:
                cls._memory_stores[bucket] = store_class(bucket_name=bucket)
            return cls._memory_stores[bucket]

        missing = config.missing_store_fields()
        if missing:
            raise ConfigError(f"Missing object store configuration: {', '.join(missing)}")

        return store_class(
            bucket_name=config.bucket_name,
            credentials=config.credentials,
            domain=config.domain,
            endpoint_url=config.endpoint_url,
            timeout_seconds=config.timeout_seconds
        )

    @classmethod
    def get_supported_types(cls) -> List[str]:
        """Get list of supported store types."""
        return list(cls._store_classes.keys())

    @classmethod
    def register_store(cls, store_type: str, store_class: Type[BaseObjectStore]):
        """Register a new store backend.

        Args:
            store_type: Backend name
            store_class: Store class to register
        """
        cls._store_classes[store_type] = store_class
