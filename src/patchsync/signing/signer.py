"""AWS Signature Version 4 request signing.

Implements the header-based SigV4 flow used for every object store call:

1. hash the payload (empty payloads hash the empty byte string)
2. build the canonical request from method, path, query, headers and hash
3. derive a signing key from the secret through the date/region/service chain
4. sign the string-to-sign and assemble the ``Authorization`` header

The signer is a pure function of its inputs, including the timestamp, so
identical inputs always produce an identical ``Authorization`` value.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple


ALGORITHM = "AWS4-HMAC-SHA256"
KEY_PREFIX = "AWS4"
REQUEST_TYPE = "aws4_request"
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT = "%Y%m%d"

EMPTY_PAYLOAD_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@dataclass(frozen=True)
class Credentials:
    """Credentials and scope for one signing operation."""

    access_key: str
    secret_key: str
    region: str
    service: str = "s3"

    def __repr__(self) -> str:
        return (
            f"Credentials(access_key={self.access_key!r}, secret_key='***', "
            f"region={self.region!r}, service={self.service!r})"
        )


@dataclass(frozen=True)
class CanonicalRequest:
    """The exact request description that gets hashed and signed."""

    method: str
    canonical_path: str
    canonical_query: str
    canonical_headers: str
    payload_hash: str
    signed_header_names: str = SIGNED_HEADERS

    def to_string(self) -> str:
        # canonical_headers already ends in a newline; the extra one is the
        # blank separator line before the signed header list.
        return (
            f"{self.method}\n"
            f"{self.canonical_path}\n"
            f"{self.canonical_query}\n"
            f"{self.canonical_headers}\n"
            f"{self.signed_header_names}\n"
            f"{self.payload_hash}"
        )

    @property
    def hashed(self) -> str:
        return sha256_hex(self.to_string().encode("utf-8"))


@dataclass(frozen=True)
class SignedRequest:
    """Signing output for one call. Never reused: the timestamp differs per call."""

    canonical_request: CanonicalRequest
    amz_date: str
    date_stamp: str
    credential_scope: str
    string_to_sign: str
    signature: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def authorization(self) -> str:
        return self.headers["Authorization"]


def sha256_hex(data: Optional[bytes]) -> str:
    """Lowercase hex SHA-256 of ``data``; ``None`` hashes as empty bytes."""
    return hashlib.sha256(data or b"").hexdigest()


def hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the request signing key via the four-step HMAC chain."""
    k_date = hmac_sha256(f"{KEY_PREFIX}{secret_key}".encode("utf-8"), date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, REQUEST_TYPE)


def split_uri(uri: str) -> Tuple[str, str]:
    """Split on the first ``?`` into (path, raw query).

    The query is used verbatim, neither sorted nor re-encoded.
    """
    path, _, query = uri.partition("?")
    return path, query


def _as_utc(timestamp: Optional[datetime]) -> datetime:
    if timestamp is None:
        return datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class SignatureSigner:
    """Produces SigV4 headers for object store requests."""

    def build_canonical_request(
        self,
        method: str,
        host: str,
        uri: str,
        payload_hash: str,
        amz_date: str
    ) -> CanonicalRequest:
        path, query = split_uri(uri)
        canonical_headers = (
            f"host:{host}\n"
            f"x-amz-content-sha256:{payload_hash}\n"
            f"x-amz-date:{amz_date}\n"
        )
        return CanonicalRequest(
            method=method.upper(),
            canonical_path=path,
            canonical_query=query,
            canonical_headers=canonical_headers,
            payload_hash=payload_hash
        )

    def sign(
        self,
        method: str,
        host: str,
        uri: str,
        payload: Optional[bytes],
        credentials: Credentials,
        timestamp: Optional[datetime] = None
    ) -> SignedRequest:
        """Sign a request.

        Args:
            method: HTTP method
            host: Value of the ``host`` header, e.g. ``bucket.s3.us-east-1.amazonaws.com``
            uri: Path with optional query, e.g. ``/?list-type=2`` or ``/Fix.patch``
            payload: Request body, ``None`` for bodiless requests
            credentials: Access/secret key with region and service
            timestamp: Signing time, defaults to now (UTC)

        Returns:
            SignedRequest carrying the headers to send
        """
        now = _as_utc(timestamp)
        amz_date = now.strftime(AMZ_DATE_FORMAT)
        date_stamp = now.strftime(DATE_STAMP_FORMAT)

        payload_hash = sha256_hex(payload)
        canonical_request = self.build_canonical_request(method, host, uri, payload_hash, amz_date)

        credential_scope = f"{date_stamp}/{credentials.region}/{credentials.service}/{REQUEST_TYPE}"
        string_to_sign = (
            f"{ALGORITHM}\n"
            f"{amz_date}\n"
            f"{credential_scope}\n"
            f"{canonical_request.hashed}"
        )

        signing_key = derive_signing_key(
            credentials.secret_key, date_stamp, credentials.region, credentials.service
        )
        signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        authorization = (
            f"{ALGORITHM} Credential={credentials.access_key}/{credential_scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        )

        headers = {
            "host": host,
            "x-amz-date": amz_date,
            "x-amz-content-sha256": payload_hash,
            "Authorization": authorization,
        }

        return SignedRequest(
            canonical_request=canonical_request,
            amz_date=amz_date,
            date_stamp=date_stamp,
            credential_scope=credential_scope,
            string_to_sign=string_to_sign,
            signature=signature,
            headers=headers
        )
