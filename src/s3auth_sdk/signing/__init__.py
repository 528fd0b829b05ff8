"""
S3 Auth Python SDK - Request Signing Module

AWS Signature Version 4 implementation for S3-compatible object storage.
This module provides header-based request signing, presigned URLs and
chunk signing for streaming uploads.
"""

from .types import (
    SigningContext,
    CredentialScope,
    CanonicalRequest,
    SignatureResult,
    PresignedUrl,
    SigningErrorCodes,
    HttpMethod,
    SigningMode,
    SIGN_V4_ALGORITHM,
    SIGN_V4_CHUNK_ALGORITHM,
    UNSIGNED_PAYLOAD,
    STREAMING_PAYLOAD,
    EMPTY_SHA256,
    IGNORED_HEADERS,
    DEFAULT_PRESIGN_EXPIRY,
)

from .s3v4_signer import (
    S3V4Signer,
    create_signer,
    sign_request,
    presign_url,
    sign_chunk,
    seed_chunk_signature,
    post_presign_signature,
)

from .signing_config import (
    SigningCredentials,
    create_signing_context,
    create_context_for_credentials,
    signing_context_from_dict,
)

from .canonical_request import (
    CanonicalRequestBuilder,
    build_canonical_request,
    canonical_query_string,
)

from .key_derivation import (
    credential_scope,
    credential_string,
    derive_signing_key,
    compute_signature,
)

from .chunked import (
    ChunkSigner,
    ChunkedPayloadEncoder,
    DEFAULT_CHUNK_SIZE,
    chunked_content_length,
    streaming_headers,
)

from .utils import (
    sha256_hex,
    hmac_sha256,
    escape_path,
    escape_query,
    to_amz_date,
    to_signer_date,
    to_expiration_date,
    to_http_header_date,
    parse_amz_date,
)

from .integration import (
    S3V4Auth,
    sign_prepared_request,
    presign_request,
    create_signing_session,
)

# Public API exports
__all__ = [
    # Core signing functionality
    'S3V4Signer',
    'create_signer',
    'sign_request',
    'presign_url',
    'sign_chunk',
    'seed_chunk_signature',
    'post_presign_signature',
    # Types
    'SigningContext',
    'CredentialScope',
    'CanonicalRequest',
    'SignatureResult',
    'PresignedUrl',
    'SigningErrorCodes',
    'HttpMethod',
    'SigningMode',
    'SIGN_V4_ALGORITHM',
    'SIGN_V4_CHUNK_ALGORITHM',
    'UNSIGNED_PAYLOAD',
    'STREAMING_PAYLOAD',
    'EMPTY_SHA256',
    'IGNORED_HEADERS',
    'DEFAULT_PRESIGN_EXPIRY',
    # Context construction
    'SigningCredentials',
    'create_signing_context',
    'create_context_for_credentials',
    'signing_context_from_dict',
    # Canonicalization and key derivation
    'CanonicalRequestBuilder',
    'build_canonical_request',
    'canonical_query_string',
    'credential_scope',
    'credential_string',
    'derive_signing_key',
    'compute_signature',
    # Streaming uploads
    'ChunkSigner',
    'ChunkedPayloadEncoder',
    'DEFAULT_CHUNK_SIZE',
    'chunked_content_length',
    'streaming_headers',
    # Utilities
    'sha256_hex',
    'hmac_sha256',
    'escape_path',
    'escape_query',
    'to_amz_date',
    'to_signer_date',
    'to_expiration_date',
    'to_http_header_date',
    'parse_amz_date',
    # HTTP Integration
    'S3V4Auth',
    'sign_prepared_request',
    'presign_request',
    'create_signing_session',
]
