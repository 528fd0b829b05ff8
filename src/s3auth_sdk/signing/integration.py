"""
HTTP client integration for request signing

This module connects the S3 V4 signer to the ``requests`` HTTP request model:
an auth handler signing ``PreparedRequest`` objects, a helper for presigning
a method/URL pair and a session factory with signing attached.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union
from urllib.parse import SplitResult, urlsplit

import requests
from requests.auth import AuthBase
from requests.models import PreparedRequest

from ..exceptions import ConfigurationError, S3AuthSDKError, SigningError
from .types import (
    HttpMethod,
    PresignedUrl,
    SigningErrorCodes,
    DEFAULT_PRESIGN_EXPIRY,
    EMPTY_SHA256,
    UNSIGNED_PAYLOAD,
)
from .utils import escape_path, sha256_hex, to_amz_date, utc_now
from .canonical_request import encode_query
from .signing_config import SigningCredentials, create_context_for_credentials
from .s3v4_signer import S3V4Signer

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {'http': 80, 'https': 443}

CredentialsSource = Union[SigningCredentials, Any]


def _resolve_credentials(config: CredentialsSource) -> SigningCredentials:
    """Accept ``SigningCredentials`` or a client config exposing them."""
    if isinstance(config, SigningCredentials):
        return config

    if hasattr(config, 'signing_credentials'):
        return config.signing_credentials()

    raise ConfigurationError(
        f"Unsupported signing configuration: {type(config).__name__}",
        SigningErrorCodes.INVALID_CONFIG,
        {"config_type": type(config).__name__}
    )


def _host_header(parsed: SplitResult) -> str:
    """Host header value as sent by the transport (default ports dropped)."""
    host = parsed.hostname or ""
    if ':' in host:
        host = f"[{host}]"
    if parsed.port and parsed.port != _DEFAULT_PORTS.get(parsed.scheme):
        return f"{host}:{parsed.port}"
    return host


def _payload_hash(body: Any, unsigned_payload: bool) -> str:
    if unsigned_payload:
        return UNSIGNED_PAYLOAD

    if body is None:
        return EMPTY_SHA256

    if isinstance(body, (str, bytes)):
        return sha256_hex(body)

    logger.warning("Request body is a stream, signing with UNSIGNED-PAYLOAD")
    return UNSIGNED_PAYLOAD


def sign_prepared_request(
    prepared_request: PreparedRequest,
    config: CredentialsSource,
    unsigned_payload: bool = False,
    timestamp: Optional[datetime] = None,
    signer: Optional[S3V4Signer] = None
) -> PreparedRequest:
    """
    Sign a prepared request in place.

    ``host``, ``x-amz-date`` and ``x-amz-content-sha256`` are added when
    missing, the URL is rewritten to its canonical escaped form and the
    ``Authorization`` header is set.

    Args:
        prepared_request: Prepared request to sign
        config: ``SigningCredentials`` or a ``ClientConfig``
        unsigned_payload: Sign with ``UNSIGNED-PAYLOAD`` instead of hashing the body
        timestamp: Signing time, defaults to now
        signer: Optional signer instance

    Returns:
        PreparedRequest: The signed request

    Raises:
        ValidationError: Unsupported method or URL
        ConfigurationError: Missing credentials or region
        SigningError: If signing fails
    """
    credentials = _resolve_credentials(config)
    signer = signer or S3V4Signer()

    try:
        parsed = urlsplit(prepared_request.url)
        headers: Dict[str, Any] = dict(prepared_request.headers or {})
        present = {name.lower() for name in headers}

        added: Dict[str, str] = {}
        if 'host' not in present:
            added['host'] = _host_header(parsed)
        if 'x-amz-date' not in present:
            added['x-amz-date'] = to_amz_date(timestamp or utc_now())
        if 'x-amz-content-sha256' not in present:
            added['x-amz-content-sha256'] = _payload_hash(prepared_request.body, unsigned_payload)
        headers.update(added)

        context = create_context_for_credentials(
            credentials,
            prepared_request.method,
            prepared_request.url,
            headers=headers
        )
        result = signer.sign_request(context)

        url = f"{parsed.scheme}://{parsed.netloc}{escape_path(context.path)}"
        if context.query:
            url = f"{url}?{encode_query(context.query)}"
        prepared_request.url = url

        for name, value in added.items():
            prepared_request.headers[name] = value
        prepared_request.headers['Authorization'] = result.authorization

        logger.debug(f"Signed {context.method.value} request to {url}")
        return prepared_request

    except Exception as e:
        if isinstance(e, S3AuthSDKError):
            raise

        raise SigningError(
            f"Prepared request signing failed: {e}",
            SigningErrorCodes.SIGNING_FAILED,
            {"original_error": str(e)}
        )


def presign_request(
    method: Union[str, HttpMethod],
    url: str,
    config: CredentialsSource,
    expires: Optional[int] = None,
    timestamp: Optional[datetime] = None,
    signer: Optional[S3V4Signer] = None
) -> PresignedUrl:
    """
    Presign a method and URL.

    Args:
        method: HTTP method
        url: Object URL, may carry query parameters
        config: ``SigningCredentials`` or a ``ClientConfig``
        expires: Validity in seconds; defaults to the config's presign
            expiry, or one hour
        timestamp: Signing time, defaults to now
        signer: Optional signer instance

    Returns:
        PresignedUrl: Presigned URL
    """
    credentials = _resolve_credentials(config)
    if expires is None:
        expires = getattr(config, 'presign_expiry', DEFAULT_PRESIGN_EXPIRY)

    # Sign the host the way a client will send it
    parsed = urlsplit(url)
    headers = {'host': _host_header(parsed)} if parsed.hostname else None

    context = create_context_for_credentials(
        credentials,
        method,
        url,
        headers=headers,
        payload_hash=UNSIGNED_PAYLOAD,
        timestamp=timestamp or utc_now()
    )
    return (signer or S3V4Signer()).presign_url(context, expires)


class S3V4Auth(AuthBase):
    """
    ``requests`` auth handler signing every request with S3 V4.

    Example:
        >>> session = requests.Session()
        >>> session.auth = S3V4Auth(SigningCredentials("AKID", "secret", "us-east-1"))
    """

    def __init__(self, config: CredentialsSource, unsigned_payload: bool = False):
        """
        Initialize auth handler.

        Args:
            config: ``SigningCredentials`` or a ``ClientConfig``
            unsigned_payload: Sign with ``UNSIGNED-PAYLOAD`` instead of hashing bodies
        """
        self.credentials = _resolve_credentials(config)
        self.unsigned_payload = unsigned_payload
        self.signer = S3V4Signer()

    def __call__(self, request: PreparedRequest) -> PreparedRequest:
        return sign_prepared_request(
            request,
            self.credentials,
            unsigned_payload=self.unsigned_payload,
            signer=self.signer
        )

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, S3V4Auth)
            and self.credentials == other.credentials
            and self.unsigned_payload == other.unsigned_payload
        )

    def __ne__(self, other: Any) -> bool:
        return not self == other


def create_signing_session(
    config: CredentialsSource,
    unsigned_payload: bool = False,
    **session_kwargs
) -> requests.Session:
    """
    Create a ``requests.Session`` that signs every request.

    Args:
        config: ``SigningCredentials`` or a ``ClientConfig``
        unsigned_payload: Sign with ``UNSIGNED-PAYLOAD`` instead of hashing bodies
        **session_kwargs: Attributes to set on the session

    Returns:
        requests.Session: Session with ``S3V4Auth`` attached
    """
    session = requests.Session()

    for key, value in session_kwargs.items():
        if hasattr(session, key):
            setattr(session, key, value)

    session.auth = S3V4Auth(config, unsigned_payload=unsigned_payload)
    logger.info(f"Configured S3 V4 signing session for region: {session.auth.credentials.region}")
    return session
