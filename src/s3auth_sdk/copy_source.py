"""
Copy-source and conditional headers for copy and compose requests

Source objects are described by composing independent values: an
``ObjectRef`` naming the object, optional ``ConditionalReadOptions`` and an
optional ``SseCustomerKey``. Building them yields ``ConditionalHeaders``,
a validated header mapping the signer folds verbatim into the request.
"""

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .exceptions import ValidationError
from .signing.types import SigningErrorCodes
from .signing.utils import escape_path, escape_query, to_http_header_date

logger = logging.getLogger(__name__)

COPY_SOURCE = "x-amz-copy-source"
COPY_SOURCE_IF_MATCH = "x-amz-copy-source-if-match"
COPY_SOURCE_IF_NONE_MATCH = "x-amz-copy-source-if-none-match"
COPY_SOURCE_IF_MODIFIED_SINCE = "x-amz-copy-source-if-modified-since"
COPY_SOURCE_IF_UNMODIFIED_SINCE = "x-amz-copy-source-if-unmodified-since"
METADATA_DIRECTIVE = "x-amz-metadata-directive"
METADATA_DIRECTIVE_REPLACE = "REPLACE"

SSEC_COPY_ALGORITHM = "x-amz-copy-source-server-side-encryption-customer-algorithm"
SSEC_COPY_KEY = "x-amz-copy-source-server-side-encryption-customer-key"
SSEC_COPY_KEY_MD5 = "x-amz-copy-source-server-side-encryption-customer-key-MD5"
SSEC_ALGORITHM = "AES256"
SSEC_KEY_LENGTH = 32


def _copy_source_error(message: str, details: Optional[Dict[str, Any]] = None) -> ValidationError:
    return ValidationError(message, SigningErrorCodes.INVALID_COPY_SOURCE, details)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_etag(value: Optional[str], name: str) -> None:
    if value is not None and (not isinstance(value, str) or not value):
        raise _copy_source_error(f"{name} cannot be empty")


def _validate_time(value: Optional[datetime], name: str) -> None:
    if value is not None and not isinstance(value, datetime):
        raise _copy_source_error(
            f"{name} must be a datetime",
            {name: type(value).__name__}
        )


@dataclass(frozen=True)
class ObjectRef:
    """
    Bucket, object name and optional version of a source object
    """
    bucket: str
    object_name: str
    version_id: Optional[str] = None

    def __post_init__(self):
        if not self.bucket or not isinstance(self.bucket, str):
            raise _copy_source_error("Bucket name is required")

        if not self.object_name or not isinstance(self.object_name, str):
            raise _copy_source_error("Object name is required")

        if self.version_id is not None and (not isinstance(self.version_id, str) or not self.version_id):
            raise _copy_source_error("Version ID cannot be empty")

    def __str__(self) -> str:
        name = f"{self.bucket}/{self.object_name}"
        if self.version_id:
            name = f"{name}?versionId={self.version_id}"
        return name


@dataclass(frozen=True)
class ConditionalReadOptions:
    """
    Range and precondition options of a conditional read

    Attributes:
        offset: Start offset, zero or greater
        length: Number of bytes, greater than zero
        match_etag: Proceed only if the source ETag matches
        not_match_etag: Proceed only if the source ETag differs
        modified_since: Proceed only if modified after this time
        unmodified_since: Proceed only if not modified after this time
    """
    offset: Optional[int] = None
    length: Optional[int] = None
    match_etag: Optional[str] = None
    not_match_etag: Optional[str] = None
    modified_since: Optional[datetime] = None
    unmodified_since: Optional[datetime] = None

    def __post_init__(self):
        if self.offset is not None and (not _is_int(self.offset) or self.offset < 0):
            raise ValidationError(
                "Offset should be zero or greater",
                SigningErrorCodes.INVALID_COPY_SOURCE,
                {"offset": str(self.offset)}
            )

        if self.length is not None and (not _is_int(self.length) or self.length <= 0):
            raise ValidationError(
                "Length should be greater than zero",
                SigningErrorCodes.INVALID_COPY_SOURCE,
                {"length": str(self.length)}
            )

        _validate_etag(self.match_etag, "match_etag")
        _validate_etag(self.not_match_etag, "not_match_etag")
        _validate_time(self.modified_since, "modified_since")
        _validate_time(self.unmodified_since, "unmodified_since")

    def precondition_headers(self) -> Dict[str, str]:
        """ETag and modification-time precondition headers."""
        headers = {}
        if self.match_etag is not None:
            headers[COPY_SOURCE_IF_MATCH] = self.match_etag
        if self.not_match_etag is not None:
            headers[COPY_SOURCE_IF_NONE_MATCH] = self.not_match_etag
        if self.modified_since is not None:
            headers[COPY_SOURCE_IF_MODIFIED_SINCE] = to_http_header_date(self.modified_since)
        if self.unmodified_since is not None:
            headers[COPY_SOURCE_IF_UNMODIFIED_SINCE] = to_http_header_date(self.unmodified_since)
        return headers


@dataclass(frozen=True)
class SseCustomerKey:
    """
    Server-side encryption customer key (SSE-C) of an encrypted source

    Attributes:
        key: 256-bit AES key (never rendered in repr)
    """
    key: bytes = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.key, bytes) or len(self.key) != SSEC_KEY_LENGTH:
            raise ValidationError(
                f"SSE-C key must be {SSEC_KEY_LENGTH} bytes",
                SigningErrorCodes.INVALID_COPY_SOURCE
            )

    def copy_source_headers(self) -> Dict[str, str]:
        """Headers that let the server decrypt the copy source."""
        return {
            SSEC_COPY_ALGORITHM: SSEC_ALGORITHM,
            SSEC_COPY_KEY: base64.b64encode(self.key).decode('ascii'),
            SSEC_COPY_KEY_MD5: base64.b64encode(hashlib.md5(self.key).digest()).decode('ascii'),
        }


@dataclass(frozen=True)
class CopySource:
    """
    Source of a copy or compose request.

    Attributes:
        ref: Source object
        conditions: Optional range and precondition options
        ssec: Optional SSE-C key of the source
    """
    ref: ObjectRef
    conditions: Optional[ConditionalReadOptions] = None
    ssec: Optional[SseCustomerKey] = None

    def __post_init__(self):
        if not isinstance(self.ref, ObjectRef):
            raise _copy_source_error("Copy source requires an ObjectRef")


@dataclass(frozen=True)
class ConditionalHeaders:
    """
    Validated copy-source header mapping.

    Attributes:
        headers: Read-only header mapping
        object_size: Source object size the headers were validated
            against (compose sources only)
    """
    headers: Mapping[str, str]
    object_size: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))


@dataclass(frozen=True)
class CopyConditions:
    """
    Flat copy preconditions with optional metadata replacement

    Attributes:
        modified: Copy only if modified after this time
        unmodified: Copy only if not modified after this time
        match_etag: Copy only if the source ETag matches
        not_match_etag: Copy only if the source ETag differs
        replace_metadata: Replace destination metadata instead of copying it
    """
    modified: Optional[datetime] = None
    unmodified: Optional[datetime] = None
    match_etag: Optional[str] = None
    not_match_etag: Optional[str] = None
    replace_metadata: bool = False

    def __post_init__(self):
        _validate_time(self.modified, "modified")
        _validate_time(self.unmodified, "unmodified")
        _validate_etag(self.match_etag, "match_etag")
        _validate_etag(self.not_match_etag, "not_match_etag")

    @property
    def headers(self) -> Dict[str, str]:
        """Condition headers."""
        headers = {}
        if self.modified is not None:
            headers[COPY_SOURCE_IF_MODIFIED_SINCE] = to_http_header_date(self.modified)
        if self.unmodified is not None:
            headers[COPY_SOURCE_IF_UNMODIFIED_SINCE] = to_http_header_date(self.unmodified)
        if self.match_etag is not None:
            headers[COPY_SOURCE_IF_MATCH] = self.match_etag
        if self.not_match_etag is not None:
            headers[COPY_SOURCE_IF_NONE_MATCH] = self.not_match_etag
        if self.replace_metadata:
            headers[METADATA_DIRECTIVE] = METADATA_DIRECTIVE_REPLACE
        return headers


def _copy_source_value(ref: ObjectRef, leading_slash: bool) -> str:
    path = f"{ref.bucket}/{ref.object_name}"
    if leading_slash:
        path = f"/{path}"

    value = escape_path(path)
    if ref.version_id is not None:
        value = f"{value}?versionId={escape_query(ref.version_id)}"
    return value


def _ssec_headers(source: CopySource, secure: bool) -> Dict[str, str]:
    if source.ssec is None:
        return {}

    if not secure:
        raise ValidationError(
            "SSE-C keys can only be sent over a secure connection",
            SigningErrorCodes.INSECURE_TRANSPORT,
            {"source": str(source.ref)}
        )
    return source.ssec.copy_source_headers()


def build_copy_headers(
    source: CopySource,
    secure: bool = True,
    copy_conditions: Optional[CopyConditions] = None
) -> ConditionalHeaders:
    """
    Build the headers of a copy-object request.

    Args:
        source: Copy source
        secure: Whether the request goes over TLS
        copy_conditions: Optional flat conditions, applied last

    Returns:
        ConditionalHeaders: Validated header mapping

    Raises:
        ValidationError: If an SSE-C key would be sent over plain HTTP
    """
    headers = {COPY_SOURCE: _copy_source_value(source.ref, leading_slash=True)}
    headers.update(_ssec_headers(source, secure))

    if source.conditions is not None:
        headers.update(source.conditions.precondition_headers())

    if copy_conditions is not None:
        headers.update(copy_conditions.headers)

    logger.debug(f"Built copy headers for source {source.ref}")
    return ConditionalHeaders(headers=headers)


def validate_source_size(source: CopySource, object_size: int) -> None:
    """
    Check the requested offset and length against the source size.

    Raises:
        ValidationError: If the range does not fit inside the object
    """
    if not _is_int(object_size) or object_size < 0:
        raise _copy_source_error(
            "Object size must be zero or greater",
            {"object_size": str(object_size)}
        )

    options = source.conditions or ConditionalReadOptions()
    offset = options.offset or 0

    def beyond(name: str, value: int) -> ValidationError:
        return ValidationError(
            f"source {source.ref}: {name} {value} is beyond object size {object_size}",
            SigningErrorCodes.SIZE_EXCEEDED,
            {"source": str(source.ref), name.replace(' ', '_'): value, "object_size": object_size}
        )

    if options.offset is not None and options.offset >= object_size:
        raise beyond("offset", options.offset)

    if options.length is not None:
        if options.length > object_size:
            raise beyond("length", options.length)
        if offset + options.length > object_size:
            raise beyond("compose size", offset + options.length)


def build_compose_headers(
    source: CopySource,
    object_size: int,
    etag: str,
    secure: bool = True
) -> ConditionalHeaders:
    """
    Build the headers of one compose source.

    The requested range is validated against the object size before any
    header is produced, and ``x-amz-copy-source-if-match`` defaults to the
    source ETag so a concurrently replaced source is detected.

    Args:
        source: Compose source
        object_size: Current size of the source object
        etag: Current ETag of the source object
        secure: Whether the request goes over TLS

    Returns:
        ConditionalHeaders: Validated headers carrying ``object_size``

    Raises:
        ValidationError: If the range exceeds the object size, the ETag is
            empty or an SSE-C key would be sent over plain HTTP
    """
    validate_source_size(source, object_size)

    if not etag or not isinstance(etag, str):
        raise _copy_source_error("Source ETag is required")

    options = source.conditions or ConditionalReadOptions()

    headers = {COPY_SOURCE: _copy_source_value(source.ref, leading_slash=False)}
    headers.update(options.precondition_headers())
    headers.setdefault(COPY_SOURCE_IF_MATCH, etag)
    headers.update(_ssec_headers(source, secure))

    logger.debug(f"Built compose headers for source {source.ref} ({object_size} bytes)")
    return ConditionalHeaders(headers=headers, object_size=object_size)
