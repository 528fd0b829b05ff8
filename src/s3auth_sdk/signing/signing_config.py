"""
Signing context construction

This module provides the single validating factory that turns flat request
and credential parameters into a ``SigningContext``. Every check runs before
any hashing, and a context is either returned complete or an error is raised.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, unquote, urlsplit

from ..exceptions import ConfigurationError, FormatError, ValidationError
from .types import (
    HttpMethod,
    SigningContext,
    SigningErrorCodes,
    QueryPairs,
    UNSIGNED_PAYLOAD,
    STREAMING_PAYLOAD,
)
from .utils import coerce_timestamp, is_sha256_hex


_HEADER_NAME_PATTERN = re.compile(r'^[!#$%&\'*+\-.0-9A-Z^_`a-z|~]+$')

QueryInput = Union[Mapping[str, Union[str, Sequence[str], None]], Iterable[Tuple[str, str]], None]

_CONTEXT_FIELDS = frozenset({
    'method', 'url', 'scheme', 'host', 'path', 'query', 'headers', 'payload_hash',
    'timestamp', 'region', 'access_key', 'secret_key', 'prev_signature',
    'conditional_headers',
})


@dataclass(frozen=True)
class SigningCredentials:
    """
    Access key, secret key and region used for signing

    Attributes:
        access_key: Access key identifier
        secret_key: Secret access key (never rendered in repr)
        region: Region of the credential scope
    """
    access_key: str
    secret_key: str = field(repr=False)
    region: str = "us-east-1"

    def __post_init__(self):
        """Validate credentials"""
        validate_credentials(self.access_key, self.secret_key, self.region)


def validate_credentials(access_key: Any, secret_key: Any, region: Any) -> None:
    """
    Validate that access key, secret key and region are present.

    Raises:
        ConfigurationError: If any of them is missing or empty
    """
    if not access_key or not isinstance(access_key, str):
        raise ConfigurationError(
            "Access key is required",
            SigningErrorCodes.MISSING_ACCESS_KEY
        )

    if not secret_key or not isinstance(secret_key, str):
        raise ConfigurationError(
            "Secret key is required",
            SigningErrorCodes.MISSING_SECRET_KEY
        )

    if not region or not isinstance(region, str):
        raise ConfigurationError(
            "Region is required",
            SigningErrorCodes.MISSING_REGION
        )


def normalize_method(method: Union[str, HttpMethod]) -> HttpMethod:
    """
    Normalize an HTTP method.

    Raises:
        ValidationError: If the method is not supported
    """
    if isinstance(method, HttpMethod):
        return method

    try:
        return HttpMethod(str(method).upper())
    except ValueError:
        raise ValidationError(
            f"Unsupported HTTP method: {method}",
            SigningErrorCodes.INVALID_METHOD,
            {"method": str(method)}
        )


def normalize_headers(*sources: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Merge header mappings into one lower-cased mapping.

    Later sources win over earlier ones, and within a source the last
    spelling of a name wins.

    Raises:
        FormatError: If a header name or value cannot be used in a request
    """
    merged: Dict[str, str] = {}

    for source in sources:
        if not source:
            continue

        for name, value in source.items():
            if not isinstance(name, str) or not _HEADER_NAME_PATTERN.match(name.strip()):
                raise FormatError(
                    f"Invalid header name: {name!r}",
                    SigningErrorCodes.INVALID_HEADERS,
                    {"header": str(name)}
                )

            if isinstance(value, bytes):
                value = value.decode('latin-1')
            elif isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
            elif not isinstance(value, str):
                raise FormatError(
                    f"Invalid value for header {name}",
                    SigningErrorCodes.INVALID_HEADERS,
                    {"header": name, "value_type": type(value).__name__}
                )

            if '\n' in value or '\r' in value:
                raise FormatError(
                    f"Header {name} contains a line break",
                    SigningErrorCodes.INVALID_HEADERS,
                    {"header": name}
                )

            merged[name.strip().lower()] = value

    return merged


def normalize_query(query: QueryInput) -> QueryPairs:
    """
    Flatten query input into ordered (key, value) pairs.

    Accepts a mapping of key to a value or a sequence of values, or an
    iterable of pairs. ``None`` values become empty strings.
    """
    if not query:
        return ()

    pairs = []
    items = query.items() if isinstance(query, Mapping) else query

    for key, values in items:
        if values is None or isinstance(values, str):
            values = [values]

        for value in values:
            pairs.append((str(key), "" if value is None else str(value)))

    return tuple(pairs)


def _validate_payload_hash(payload_hash: Optional[str]) -> str:
    if payload_hash is None:
        raise ValidationError(
            "Payload hash is required",
            SigningErrorCodes.INVALID_PAYLOAD_HASH
        )

    if payload_hash in (UNSIGNED_PAYLOAD, STREAMING_PAYLOAD) or is_sha256_hex(payload_hash):
        return payload_hash

    raise ValidationError(
        "Payload hash must be a lower-case hex SHA-256 or a payload sentinel",
        SigningErrorCodes.INVALID_PAYLOAD_HASH,
        {"payload_hash": str(payload_hash)}
    )


def _split_url(url: str) -> Tuple[str, str, str, QueryPairs]:
    parsed = urlsplit(url)

    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValidationError(
            f"Invalid URL: {url}",
            SigningErrorCodes.INVALID_URL,
            {"url": url}
        )

    query = tuple(parse_qsl(parsed.query, keep_blank_values=True))
    return parsed.scheme, parsed.netloc, unquote(parsed.path) or "/", query


def create_signing_context(
    method: Union[str, HttpMethod],
    url: Optional[str] = None,
    *,
    scheme: str = "https",
    host: Optional[str] = None,
    path: str = "/",
    query: QueryInput = None,
    headers: Optional[Mapping[str, Any]] = None,
    payload_hash: Optional[str] = None,
    timestamp: Optional[Union[datetime, str]] = None,
    region: Optional[str] = None,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
    prev_signature: Optional[str] = None,
    conditional_headers: Optional[Any] = None,
) -> SigningContext:
    """
    Create a fully validated signing context.

    Args:
        method: HTTP method
        url: Optional full URL; when given, its scheme, host, path and query
            replace the corresponding keyword arguments (``query`` is
            appended after the URL's own parameters)
        scheme: URL scheme
        host: Host and optional port
        path: Raw request path
        query: Raw query parameters
        headers: Request headers
        payload_hash: Hex SHA-256 of the payload, ``UNSIGNED-PAYLOAD`` or the
            streaming sentinel; defaults to the ``x-amz-content-sha256`` header
        timestamp: Signing time; defaults to the ``x-amz-date`` header
        region: Region
        access_key: Access key
        secret_key: Secret key
        prev_signature: Previous chunk signature
        conditional_headers: Validated copy-source/conditional headers, either
            a ``ConditionalHeaders`` value or a plain mapping, folded into the
            header set as given

    Returns:
        SigningContext: Validated context

    Raises:
        ValidationError: Bad method, URL or payload hash
        FormatError: Unparsable timestamp or header
        ConfigurationError: Missing access key, secret key or region
    """
    http_method = normalize_method(method)
    validate_credentials(access_key, secret_key, region)

    query_pairs = normalize_query(query)
    if url is not None:
        scheme, host, path, url_query = _split_url(url)
        query_pairs = url_query + query_pairs

    folded = getattr(conditional_headers, 'headers', conditional_headers)
    merged_headers = normalize_headers(headers, folded)

    if timestamp is None:
        timestamp = merged_headers.get('x-amz-date')
    signing_time = coerce_timestamp(timestamp)

    if payload_hash is None:
        payload_hash = merged_headers.get('x-amz-content-sha256')
    payload_hash = _validate_payload_hash(payload_hash)

    if prev_signature is not None and (not isinstance(prev_signature, str) or not prev_signature):
        raise ValidationError(
            "Previous signature must be a non-empty string",
            SigningErrorCodes.MISSING_PREVIOUS_SIGNATURE
        )

    return SigningContext(
        method=http_method,
        scheme=scheme or "https",
        host=host or "",
        path=path or "/",
        query=query_pairs,
        headers=merged_headers,
        payload_hash=payload_hash,
        timestamp=signing_time,
        region=region,
        access_key=access_key,
        secret_key=secret_key,
        prev_signature=prev_signature
    )


def create_context_for_credentials(
    credentials: SigningCredentials,
    method: Union[str, HttpMethod],
    url: Optional[str] = None,
    **kwargs: Any
) -> SigningContext:
    """Create a signing context using a ``SigningCredentials`` value."""
    return create_signing_context(
        method,
        url,
        region=credentials.region,
        access_key=credentials.access_key,
        secret_key=credentials.secret_key,
        **kwargs
    )


def signing_context_from_dict(data: Mapping[str, Any]) -> SigningContext:
    """
    Create a signing context from a flat configuration mapping.

    The mapping uses the keyword names of ``create_signing_context``.

    Raises:
        ValidationError: If the mapping has unknown keys or no method
    """
    unknown = set(data) - _CONTEXT_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown signing context fields: {', '.join(sorted(unknown))}",
            SigningErrorCodes.INVALID_CONFIG,
            {"unknown_fields": sorted(unknown)}
        )

    if 'method' not in data:
        raise ValidationError(
            "Signing context requires a method",
            SigningErrorCodes.INVALID_METHOD
        )

    params = dict(data)
    method = params.pop('method')
    url = params.pop('url', None)
    return create_signing_context(method, url, **params)
