"""In-process object store used for offline runs and tests."""

from typing import Dict, List, Optional

from .base import BaseObjectStore
from ..errors import RemoteError


class InMemoryObjectStore(BaseObjectStore):
    """Dictionary-backed store with the same semantics as the remote one.

    Keys come back in insertion order, missing keys raise ``RemoteError``
    with status 404 and deletes of absent keys succeed.
    """

    def __init__(self, bucket_name: str = "memory", objects: Optional[Dict[str, bytes]] = None, **kwargs):
        super().__init__(bucket_name, **kwargs)
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.calls: List[tuple] = []

    async def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        self.calls.append(("list", prefix))
        return [key for key in self.objects if not prefix or key.startswith(prefix)]

    async def put_object(self, key: str, data: bytes) -> None:
        self.calls.append(("put", key, bytes(data)))
        self.objects[key] = bytes(data)

    async def get_object(self, key: str) -> bytes:
        self.calls.append(("get", key))
        if key not in self.objects:
            raise RemoteError(
                f"<Error><Code>NoSuchKey</Code><Key>{key}</Key></Error>",
                status=404,
                method="GET",
                key=key
            )
        return self.objects[key]

    async def delete_object(self, key: str) -> None:
        self.calls.append(("delete", key))
        self.objects.pop(key, None)
