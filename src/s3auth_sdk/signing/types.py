"""
Type definitions for S3 Signature Version 4 signing

This module provides the immutable value types and read-only constant tables
shared by the canonical request builder, the key derivation chain, the signer
and the post-policy encoder.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


# Algorithm identifiers
SIGN_V4_ALGORITHM = "AWS4-HMAC-SHA256"
SIGN_V4_CHUNK_ALGORITHM = "AWS4-HMAC-SHA256-PAYLOAD"

# Payload hash sentinels
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
STREAMING_PAYLOAD = "STREAMING-AWS4-HMAC-SHA256-PAYLOAD"

# SHA-256 of the empty string
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

SERVICE_NAME = "s3"
SCOPE_TERMINATOR = "aws4_request"
SECRET_KEY_PREFIX = "AWS4"

# Headers never included in standard and chunk signatures
IGNORED_HEADERS = frozenset({
    "authorization",
    "content-type",
    "content-length",
    "user-agent",
})

# Default presigned URL validity in seconds
DEFAULT_PRESIGN_EXPIRY = 3600

# Presigned URLs sign the host header only
PRESIGN_SIGNED_HEADERS = ("host",)

# strftime patterns (UTC)
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SIGNER_DATE_FORMAT = "%Y%m%d"
EXPIRATION_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
HTTP_HEADER_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"


class HttpMethod(str, Enum):
    """HTTP methods supported for signing"""
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    HEAD = "HEAD"


class SigningMode(str, Enum):
    """Canonicalization mode, selects which headers are signed"""
    STANDARD = "standard"
    PRESIGN = "presign"
    CHUNK = "chunk"


@dataclass(frozen=True)
class SigningContext:
    """
    Fully validated input of a single signing operation.

    Instances are produced by ``create_signing_context``; there is no
    partially-valid state.

    Attributes:
        method: HTTP method
        scheme: URL scheme used when rendering presigned URLs
        host: Host (and port) used when rendering presigned URLs
        path: Raw, unescaped request path
        query: Raw query parameters as ordered (key, value) pairs
        headers: Lower-cased header names mapped to values
        payload_hash: Hex SHA-256 of the payload or a payload sentinel
        timestamp: UTC signing time
        region: Region of the credential scope
        access_key: Access key identifier
        secret_key: Secret key (never rendered in repr)
        prev_signature: Previous chunk signature (chunk mode only)
    """
    method: HttpMethod
    scheme: str
    host: str
    path: str
    query: Tuple[Tuple[str, str], ...]
    headers: Mapping[str, str]
    payload_hash: str
    timestamp: datetime
    region: str
    access_key: str
    secret_key: str = field(repr=False)
    prev_signature: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))

    @property
    def query_params(self) -> Dict[str, List[str]]:
        """Query parameters grouped by key, values in input order."""
        grouped: Dict[str, List[str]] = {}
        for key, value in self.query:
            grouped.setdefault(key, []).append(value)
        return grouped

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class CredentialScope:
    """
    Credential scope ``date/region/s3/aws4_request``.

    Attributes:
        date: Scope date in YYYYMMDD form
        region: Region name
    """
    date: str
    region: str
    service: str = SERVICE_NAME
    terminator: str = SCOPE_TERMINATOR

    def __str__(self) -> str:
        return f"{self.date}/{self.region}/{self.service}/{self.terminator}"

    def credential(self, access_key: str) -> str:
        """Return ``accessKey/scope``."""
        return f"{access_key}/{self}"


@dataclass(frozen=True)
class CanonicalRequest:
    """
    Built canonical request.

    Attributes:
        text: Canonical request string
        hash: Lower-case hex SHA-256 of ``text``
        signed_headers: ``;``-joined signed header names
        canonical_query_string: Canonical query string
        mode: Mode the request was canonicalized for
    """
    text: str
    hash: str
    signed_headers: str
    canonical_query_string: str
    mode: SigningMode


@dataclass(frozen=True)
class SignatureResult:
    """
    Result of header-based request signing

    Attributes:
        authorization: Authorization header value
        signature: Hex signature
        credential: ``accessKey/scope`` credential string
        signed_headers: ``;``-joined signed header names
        headers: Request headers including ``authorization``
        canonical_request: Canonical request that was signed
        string_to_sign: String that was signed
    """
    authorization: str
    signature: str
    credential: str
    signed_headers: str
    headers: Dict[str, str]
    canonical_request: CanonicalRequest
    string_to_sign: str


@dataclass(frozen=True)
class PresignedUrl:
    """
    Presigned URL result

    Attributes:
        url: Complete URL including ``X-Amz-Signature``
        signature: Hex signature
        expires: Expiry in seconds
        canonical_request: Canonical request that was signed
        string_to_sign: String that was signed
    """
    url: str
    signature: str
    expires: int
    canonical_request: CanonicalRequest
    string_to_sign: str

    def __str__(self) -> str:
        return self.url


# Common signing error codes
class SigningErrorCodes:
    """Standard error codes for signing operations"""

    # Configuration errors
    MISSING_ACCESS_KEY = "MISSING_ACCESS_KEY"
    MISSING_SECRET_KEY = "MISSING_SECRET_KEY"
    MISSING_REGION = "MISSING_REGION"
    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    MISSING_ENDPOINT = "MISSING_ENDPOINT"
    INVALID_ENDPOINT = "INVALID_ENDPOINT"
    INVALID_PRESIGN_EXPIRY = "INVALID_PRESIGN_EXPIRY"
    INVALID_LOG_LEVEL = "INVALID_LOG_LEVEL"
    INVALID_FORMAT = "INVALID_FORMAT"
    PARSE_ERROR = "PARSE_ERROR"
    FILE_ERROR = "FILE_ERROR"

    # Request errors
    INVALID_METHOD = "INVALID_METHOD"
    INVALID_URL = "INVALID_URL"
    INVALID_HEADERS = "INVALID_HEADERS"
    NO_SIGNABLE_HEADERS = "NO_SIGNABLE_HEADERS"
    MISSING_HOST = "MISSING_HOST"
    INVALID_PAYLOAD_HASH = "INVALID_PAYLOAD_HASH"
    INVALID_EXPIRY = "INVALID_EXPIRY"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"

    # Chunk errors
    MISSING_PREVIOUS_SIGNATURE = "MISSING_PREVIOUS_SIGNATURE"
    CHUNK_CHAIN_CLOSED = "CHUNK_CHAIN_CLOSED"
    INVALID_CHUNK_SIZE = "INVALID_CHUNK_SIZE"
    INVALID_CHUNK_DATA = "INVALID_CHUNK_DATA"

    # Policy and copy-source errors
    INVALID_POLICY = "INVALID_POLICY"
    INVALID_COPY_SOURCE = "INVALID_COPY_SOURCE"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    INSECURE_TRANSPORT = "INSECURE_TRANSPORT"

    # Signing errors
    SIGNING_FAILED = "SIGNING_FAILED"
    CANONICAL_REQUEST_FAILED = "CANONICAL_REQUEST_FAILED"
    CRYPTO_ERROR = "CRYPTO_ERROR"


# Type aliases for convenience
HeaderDict = Dict[str, str]
QueryPairs = Tuple[Tuple[str, str], ...]
