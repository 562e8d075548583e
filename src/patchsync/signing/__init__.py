"""Request signing for the object store."""

from .signer import (
    SignatureSigner,
    Credentials,
    CanonicalRequest,
    SignedRequest,
    EMPTY_PAYLOAD_HASH,
    derive_signing_key,
    sha256_hex
)

__all__ = [
    "SignatureSigner",
    "Credentials",
    "CanonicalRequest",
    "SignedRequest",
    "EMPTY_PAYLOAD_HASH",
    "derive_signing_key",
    "sha256_hex"
]
