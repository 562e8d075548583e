"""S3-compatible object store client signed with AWS Signature Version 4."""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urlsplit

import aiohttp
from yarl import URL

from .base import BaseObjectStore
from .keys import KeyExtractor, TagScanKeyExtractor
from ..errors import NetworkError, RemoteError
from ..signing import Credentials, SignatureSigner
from ..utils.logging import log_execution_time


LIST_QUERY = "list-type=2"


class ObjectStoreClient(BaseObjectStore):
    """Minimal list/put/get/delete client for a virtual-hosted bucket."""

    def __init__(
        self,
        bucket_name: str,
        credentials: Credentials,
        domain: str = "amazonaws.com",
        endpoint_url: Optional[str] = None,
        timeout_seconds: float = 60.0,
        key_extractor: Optional[KeyExtractor] = None,
        signer: Optional[SignatureSigner] = None,
        clock: Optional[Callable[[], datetime]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        **kwargs
    ):
        """Initialize the client.

        Args:
            bucket_name: Bucket holding the objects
            credentials: Keys plus region and service used for signing
            domain: Provider domain, the host becomes ``bucket.service.region.domain``
            endpoint_url: Scheme and host to use instead, e.g. for S3-compatible stores
            timeout_seconds: Total timeout for each request
            key_extractor: Parser for list responses
            signer: Request signer
            clock: Source of signing timestamps, defaults to now (UTC)
            session: Existing aiohttp session, not closed by this client
        """
        super().__init__(bucket_name, **kwargs)

        self.credentials = credentials
        self.domain = domain
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.key_extractor = key_extractor or TagScanKeyExtractor()
        self.signer = signer or SignatureSigner()
        self.clock = clock

        if endpoint_url:
            parts = urlsplit(endpoint_url)
            self.scheme = parts.scheme or "https"
            self.host = parts.netloc
        else:
            self.scheme = "https"
            self.host = f"{bucket_name}.{credentials.service}.{credentials.region}.{domain}"

        self.session = session
        self._owns_session = session is None

        self.logger.info(
            "Object store client initialized",
            bucket=bucket_name,
            host=self.host,
            region=credentials.region
        )

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}"

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()

    @staticmethod
    def object_uri(key: str) -> str:
        """Request path for ``key`` with unreserved characters and ``/`` left as-is."""
        return "/" + quote(key, safe="/~")

    async def _send(
        self,
        method: str,
        uri: str,
        payload: Optional[bytes] = None,
        key: Optional[str] = None
    ) -> bytes:
        """Sign and dispatch one request, returning the body of a 2xx response."""
        session = await self._ensure_session()

        # Signed immediately before dispatch, never reused.
        timestamp = self.clock() if self.clock else None
        signed = self.signer.sign(method, self.host, uri, payload, self.credentials, timestamp)

        headers: Dict[str, str] = dict(signed.headers)
        if payload is not None:
            headers["Content-Type"] = "application/octet-stream"

        url = URL(f"{self.base_url}{uri}", encoded=True)

        try:
            async with session.request(method, url, data=payload, headers=headers) as response:
                body = await response.read()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error("Object store request failed", method=method, uri=uri, error=str(e))
            raise NetworkError(f"Network error during {method} {uri}: {e}") from e

        if not 200 <= status < 300:
            message = body.decode("utf-8", errors="replace")
            self.logger.error(
                "Object store rejected request",
                method=method,
                uri=uri,
                status=status
            )
            raise RemoteError(message, status=status, method=method, key=key)

        self.logger.debug("Object store request succeeded", method=method, uri=uri, status=status)
        return body

    @log_execution_time
    async def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        uri = f"/?{LIST_QUERY}"
        if prefix:
            uri = f"{uri}&prefix={prefix}"

        body = await self._send("GET", uri)
        keys = self.key_extractor.extract(body.decode("utf-8", errors="replace"))

        self.logger.info("Listed objects", bucket=self.bucket_name, count=len(keys))
        return keys

    @log_execution_time
    async def put_object(self, key: str, data: bytes) -> None:
        await self._send("PUT", self.object_uri(key), payload=data, key=key)
        self.logger.info("Uploaded object", key=key, size=len(data))

    @log_execution_time
    async def get_object(self, key: str) -> bytes:
        data = await self._send("GET", self.object_uri(key), key=key)
        self.logger.info("Downloaded object", key=key, size=len(data))
        return data

    @log_execution_time
    async def delete_object(self, key: str) -> None:
        await self._send("DELETE", self.object_uri(key), key=key)
        self.logger.info("Deleted object", key=key)

    def get_store_info(self) -> Dict[str, Any]:
        info = super().get_store_info()
        info.update({
            "endpoint": self.base_url,
            "region": self.credentials.region,
            "service": self.credentials.service
        })
        return info
