"""
Utility functions for request signing

This module provides the digest and HMAC primitives, the two S3 escaping
routines, and the timestamp formats used by Signature Version 4.
"""

import re
import time
import hashlib
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, hmac as crypto_hmac

from ..exceptions import FormatError, SigningError
from .types import (
    SigningErrorCodes,
    AMZ_DATE_FORMAT,
    SIGNER_DATE_FORMAT,
    EXPIRATION_DATE_FORMAT,
)


_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)
_SLASH = ord('/')
_SHA256_HEX_PATTERN = re.compile(r'^[0-9a-f]{64}$')


def sha256_hex(data: Union[str, bytes]) -> str:
    """
    Calculate lower-case hex SHA-256 of the given data.

    Args:
        data: String (UTF-8 encoded before hashing) or bytes

    Returns:
        str: 64-character lower-case hex digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, data: Union[str, bytes]) -> bytes:
    """
    Calculate HMAC-SHA256 of the given data.

    Args:
        key: HMAC key bytes
        data: Message (UTF-8 encoded when a string)

    Returns:
        bytes: 32-byte MAC

    Raises:
        SigningError: If the MAC cannot be computed
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    try:
        mac = crypto_hmac.HMAC(key, hashes.SHA256())
        mac.update(data)
        return mac.finalize()
    except (TypeError, ValueError) as e:
        raise SigningError(
            f"HMAC computation failed: {e}",
            SigningErrorCodes.CRYPTO_ERROR,
            {"original_error": str(e)}
        )


def to_hex(data: bytes) -> str:
    """
    Convert bytes to lowercase hex string.

    Args:
        data: Bytes to convert

    Returns:
        str: Lowercase hex string
    """
    return data.hex().lower()


def is_sha256_hex(value: str) -> bool:
    """Check for a 64-character lower-case hex digest."""
    return isinstance(value, str) and bool(_SHA256_HEX_PATTERN.match(value))


def _uri_escape(value: str, keep_slash: bool) -> str:
    result = []
    for byte in value.encode('utf-8'):
        if byte in _UNRESERVED or (keep_slash and byte == _SLASH):
            result.append(chr(byte))
        else:
            result.append(f"%{byte:02X}")
    return "".join(result)


def escape_path(path: str) -> str:
    """
    Escape a request path for the canonical request.

    Unreserved characters (``A-Z a-z 0-9 - _ . ~``) and ``/`` are kept,
    every other UTF-8 byte becomes ``%XX``.

    Args:
        path: Raw, unescaped path

    Returns:
        str: Escaped path, ``/`` for an empty path
    """
    if not path:
        return "/"
    return _uri_escape(path, keep_slash=True)


def escape_query(value: str) -> str:
    """
    Escape a query parameter key or value.

    Same alphabet as ``escape_path`` except that ``/`` is escaped too.

    Args:
        value: Raw key or value

    Returns:
        str: Escaped string
    """
    return _uri_escape(value, keep_slash=False)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_amz_date(value: datetime) -> str:
    """Format as ``yyyyMMdd'T'HHmmss'Z'``."""
    return ensure_utc(value).strftime(AMZ_DATE_FORMAT)


def to_signer_date(value: datetime) -> str:
    """Format as ``yyyyMMdd``."""
    return ensure_utc(value).strftime(SIGNER_DATE_FORMAT)


def to_expiration_date(value: datetime) -> str:
    """Format as ``yyyy-MM-dd'T'HH:mm:ss.SSS'Z'``."""
    value = ensure_utc(value)
    return f"{value.strftime(EXPIRATION_DATE_FORMAT)}.{value.microsecond // 1000:03d}Z"


def to_http_header_date(value: datetime) -> str:
    """Format as RFC 1123 date, e.g. ``Fri, 24 May 2013 00:00:00 GMT``."""
    return format_datetime(ensure_utc(value), usegmt=True)


def parse_amz_date(value: str) -> datetime:
    """
    Parse a ``yyyyMMdd'T'HHmmss'Z'`` timestamp.

    Args:
        value: Timestamp string

    Returns:
        datetime: Aware UTC datetime

    Raises:
        FormatError: If the value cannot be parsed
    """
    try:
        parsed = datetime.strptime(value, AMZ_DATE_FORMAT)
    except (TypeError, ValueError) as e:
        raise FormatError(
            f"Invalid timestamp: {value!r}",
            SigningErrorCodes.INVALID_TIMESTAMP,
            {"timestamp": value, "original_error": str(e)}
        )
    return parsed.replace(tzinfo=timezone.utc)


def coerce_timestamp(value: Optional[Union[datetime, str]]) -> datetime:
    """
    Turn a datetime or amz-date string into an aware UTC datetime.

    Raises:
        FormatError: If the value is missing or unparsable
    """
    if value is None:
        raise FormatError(
            "Signing timestamp is missing",
            SigningErrorCodes.INVALID_TIMESTAMP
        )

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, str):
        return parse_amz_date(value.strip())

    raise FormatError(
        f"Unsupported timestamp type: {type(value).__name__}",
        SigningErrorCodes.INVALID_TIMESTAMP,
        {"timestamp_type": type(value).__name__}
    )


class PerformanceTimer:
    """Simple performance timer for monitoring signing operations."""

    def __init__(self):
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000
