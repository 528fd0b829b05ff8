"""
S3 Auth Python SDK
Client-side AWS Signature Version 4 signing for S3-compatible storage
"""

import cryptography

from .version import __version__
from .exceptions import (
    S3AuthSDKError,
    ValidationError,
    FormatError,
    ConfigurationError,
    InternalConsistencyError,
    SigningError,
)
from .signing import (
    # Core signing functionality
    S3V4Signer,
    create_signer,
    sign_request,
    presign_url,
    sign_chunk,
    seed_chunk_signature,
    # Types
    SigningContext,
    SignatureResult,
    PresignedUrl,
    SigningErrorCodes,
    HttpMethod,
    SigningMode,
    UNSIGNED_PAYLOAD,
    STREAMING_PAYLOAD,
    EMPTY_SHA256,
    # Context construction
    SigningCredentials,
    create_signing_context,
    create_context_for_credentials,
    signing_context_from_dict,
    # Key derivation
    derive_signing_key,
    hmac_sha256,
    # Streaming uploads
    ChunkSigner,
    ChunkedPayloadEncoder,
    chunked_content_length,
    streaming_headers,
    # HTTP Integration
    S3V4Auth,
    sign_prepared_request,
    presign_request,
    create_signing_session,
)
from .post_policy import (
    PostPolicy,
    PostPolicyDocument,
    build_form_data,
)
from .copy_source import (
    ObjectRef,
    ConditionalReadOptions,
    SseCustomerKey,
    CopySource,
    ConditionalHeaders,
    CopyConditions,
    build_copy_headers,
    build_compose_headers,
    validate_source_size,
)
from .config import (
    ClientConfig,
    ClientConfigManager,
    CredentialsConfig,
    LoggingConfig,
    apply_logging_config,
    load_client_config_from_json,
    load_client_config_from_file,
    load_client_config_from_env,
)

# RFC 4231 test case 2
_SELF_TEST_KEY = b"Jefe"
_SELF_TEST_DATA = "what do ya want for nothing?"
_SELF_TEST_MAC = "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"


def check_platform_compatibility():
    """
    Check that the cryptography backend computes HMAC-SHA256 correctly.

    Returns:
        dict: 'cryptography_version' and the 'hmac_sha256_supported' flag
    """
    mac = hmac_sha256(_SELF_TEST_KEY, _SELF_TEST_DATA)

    return {
        'cryptography_version': cryptography.__version__,
        'hmac_sha256_supported': mac.hex() == _SELF_TEST_MAC,
    }


def initialize_sdk():
    """
    Initialize the SDK and check platform compatibility.

    Returns:
        dict: Compatibility information with 'compatible' (bool) and 'warnings' (list)
    """
    warnings = []
    compatible = True

    try:
        compat_info = check_platform_compatibility()
        if not compat_info['hmac_sha256_supported']:
            warnings.append('HMAC-SHA256 self-test failed - signatures will be rejected')
            compatible = False

    except S3AuthSDKError as e:
        warnings.append(f'Platform compatibility check failed: {e}')
        compatible = False

    return {
        'compatible': compatible,
        'warnings': warnings
    }


def is_compatible():
    """
    Quick synchronous compatibility check.

    Returns:
        bool: True if the platform can compute S3 V4 signatures
    """
    return initialize_sdk()['compatible']


# Public API exports
__all__ = [
    '__version__',
    'initialize_sdk',
    'is_compatible',
    'check_platform_compatibility',
    # Exceptions
    'S3AuthSDKError',
    'ValidationError',
    'FormatError',
    'ConfigurationError',
    'InternalConsistencyError',
    'SigningError',
    # Signing
    'S3V4Signer',
    'create_signer',
    'sign_request',
    'presign_url',
    'sign_chunk',
    'seed_chunk_signature',
    'SigningContext',
    'SignatureResult',
    'PresignedUrl',
    'SigningErrorCodes',
    'HttpMethod',
    'SigningMode',
    'UNSIGNED_PAYLOAD',
    'STREAMING_PAYLOAD',
    'EMPTY_SHA256',
    'SigningCredentials',
    'create_signing_context',
    'create_context_for_credentials',
    'signing_context_from_dict',
    'derive_signing_key',
    # Streaming uploads
    'ChunkSigner',
    'ChunkedPayloadEncoder',
    'chunked_content_length',
    'streaming_headers',
    # HTTP Integration
    'S3V4Auth',
    'sign_prepared_request',
    'presign_request',
    'create_signing_session',
    # POST policy
    'PostPolicy',
    'PostPolicyDocument',
    'build_form_data',
    # Copy sources
    'ObjectRef',
    'ConditionalReadOptions',
    'SseCustomerKey',
    'CopySource',
    'ConditionalHeaders',
    'CopyConditions',
    'build_copy_headers',
    'build_compose_headers',
    'validate_source_size',
    # Configuration
    'ClientConfig',
    'ClientConfigManager',
    'CredentialsConfig',
    'LoggingConfig',
    'apply_logging_config',
    'load_client_config_from_json',
    'load_client_config_from_file',
    'load_client_config_from_env',
]
