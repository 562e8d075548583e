"""Base object store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..utils.logging import get_logger


@dataclass(frozen=True)
class RemoteObject:
    """An entry of the store. Only the key is consumed."""

    key: str


class BaseObjectStore(ABC):
    """Abstract flat key -> bytes store."""

    def __init__(self, bucket_name: str, **kwargs):
        self.bucket_name = bucket_name
        self.logger = get_logger(self.__class__.__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Release any transport resources."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        """List object keys in document order.

        Args:
            prefix: Only return keys starting with this prefix

        Returns:
            Keys found, possibly empty
        """
        pass

    @abstractmethod
    async def put_object(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, overwriting any existing object."""
        pass

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Fetch the bytes stored under ``key``.

        Raises:
            RemoteError: If the store answered with a non-2xx status
            NetworkError: If the store could not be reached
        """
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key succeeds."""
        pass

    async def list_objects(self, prefix: Optional[str] = None) -> List[RemoteObject]:
        return [RemoteObject(key=key) for key in await self.list_keys(prefix)]

    def get_store_info(self) -> Dict[str, Any]:
        return {
            "store_type": self.__class__.__name__,
            "bucket_name": self.bucket_name
        }
