"""
Signing key derivation for S3 Signature Version 4

The signing key is derived from the secret key through a four step
HMAC-SHA256 cascade over the scope date, region, service and terminator.
Derived keys are returned to the caller and never cached here.
"""

from datetime import datetime

from ..exceptions import ConfigurationError, FormatError
from .types import (
    CredentialScope,
    SigningErrorCodes,
    SECRET_KEY_PREFIX,
    SERVICE_NAME,
    SCOPE_TERMINATOR,
)
from .utils import hmac_sha256, to_hex, to_signer_date


def _require_region(region: str) -> None:
    if not region or not isinstance(region, str):
        raise ConfigurationError(
            "Region is required",
            SigningErrorCodes.MISSING_REGION
        )


def _require_secret_key(secret_key: str) -> None:
    if not secret_key or not isinstance(secret_key, str):
        raise ConfigurationError(
            "Secret key is required",
            SigningErrorCodes.MISSING_SECRET_KEY
        )


def _require_date(date: datetime) -> None:
    if not isinstance(date, datetime):
        raise FormatError(
            "Signing date must be a datetime",
            SigningErrorCodes.INVALID_TIMESTAMP,
            {"date_type": type(date).__name__}
        )


def credential_scope(date: datetime, region: str) -> CredentialScope:
    """
    Build the credential scope for a date and region.

    Args:
        date: Signing time (only the UTC date is used)
        region: Region name

    Returns:
        CredentialScope: ``YYYYMMDD/region/s3/aws4_request``

    Raises:
        ConfigurationError: If region is empty
        FormatError: If date is not a datetime
    """
    _require_date(date)
    _require_region(region)
    return CredentialScope(date=to_signer_date(date), region=region)


def credential_string(access_key: str, date: datetime, region: str) -> str:
    """
    Build the ``accessKey/scope`` credential string.

    Raises:
        ConfigurationError: If access key or region is empty
    """
    if not access_key or not isinstance(access_key, str):
        raise ConfigurationError(
            "Access key is required",
            SigningErrorCodes.MISSING_ACCESS_KEY
        )
    return credential_scope(date, region).credential(access_key)


def derive_signing_key(secret_key: str, date: datetime, region: str) -> bytes:
    """
    Derive the per-day, per-region signing key.

    Args:
        secret_key: Secret access key
        date: Signing time (only the UTC date is used)
        region: Region name

    Returns:
        bytes: 32-byte signing key

    Raises:
        ConfigurationError: If secret key or region is empty
        FormatError: If date is not a datetime
    """
    _require_date(date)
    _require_secret_key(secret_key)
    _require_region(region)

    date_key = hmac_sha256((SECRET_KEY_PREFIX + secret_key).encode('utf-8'), to_signer_date(date))
    date_region_key = hmac_sha256(date_key, region)
    date_region_service_key = hmac_sha256(date_region_key, SERVICE_NAME)
    return hmac_sha256(date_region_service_key, SCOPE_TERMINATOR)


def compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    """
    Sign a string with a derived signing key.

    Returns:
        str: Lower-case hex HMAC-SHA256
    """
    return to_hex(hmac_sha256(signing_key, string_to_sign))
