"""
Canonical request construction for S3 Signature Version 4

This module turns a validated signing context into the deterministic
canonical request string and its SHA-256 hash:

    METHOD \\n escapedPath \\n canonicalQuery \\n canonicalHeaders \\n
    signedHeaders \\n payloadHash
"""

from typing import Dict, Iterable, List, Optional, Tuple

from ..exceptions import S3AuthSDKError, SigningError, ValidationError
from .types import (
    CanonicalRequest,
    SigningContext,
    SigningErrorCodes,
    SigningMode,
    IGNORED_HEADERS,
)
from .utils import escape_path, escape_query, sha256_hex


class CanonicalRequestBuilder:
    """
    Canonical request builder for S3 V4 signatures
    """

    def __init__(self, context: SigningContext, mode: SigningMode = SigningMode.STANDARD):
        """
        Initialize canonical request builder.

        Args:
            context: Validated signing context
            mode: Signing mode, selects the signed header set
        """
        self.context = context
        self.mode = SigningMode(mode)

    def build(self) -> CanonicalRequest:
        """
        Build the canonical request.

        Returns:
            CanonicalRequest: Canonical request text, hash and signed headers

        Raises:
            ValidationError: If no signable header is present
            SigningError: If construction fails unexpectedly
        """
        try:
            headers = select_headers(self.context, self.mode)
            if not headers:
                raise ValidationError(
                    "Request has no signable headers",
                    SigningErrorCodes.NO_SIGNABLE_HEADERS,
                    {"mode": self.mode.value, "headers": sorted(self.context.headers)}
                )

            names = sorted(headers, key=str.lower)
            signed_headers = ";".join(names)
            canonical_headers = "".join(f"{name}:{headers[name].strip()}\n" for name in names)
            query_string = canonical_query_string(encode_query(self.context.query))

            text = "\n".join([
                self.context.method.value,
                escape_path(self.context.path),
                query_string,
                canonical_headers,
                signed_headers,
                self.context.payload_hash,
            ])

            return CanonicalRequest(
                text=text,
                hash=sha256_hex(text),
                signed_headers=signed_headers,
                canonical_query_string=query_string,
                mode=self.mode
            )

        except S3AuthSDKError:
            raise
        except Exception as e:
            raise SigningError(
                f"Canonical request construction failed: {e}",
                SigningErrorCodes.CANONICAL_REQUEST_FAILED,
                {"original_error": str(e)}
            )


def select_headers(context: SigningContext, mode: SigningMode) -> Dict[str, str]:
    """
    Select the headers covered by the signature.

    Standard and chunk signing cover every header except the ignored set;
    presigned URLs cover ``host`` only.

    Args:
        context: Signing context
        mode: Signing mode

    Returns:
        dict: Lower-cased header name to value

    Raises:
        ValidationError: If a presigned URL has no host
    """
    if mode == SigningMode.PRESIGN:
        host = context.headers.get('host') or context.host
        if not host:
            raise ValidationError(
                "Presigned URL requires a host",
                SigningErrorCodes.MISSING_HOST
            )
        return {'host': host}

    return {
        name: value
        for name, value in context.headers.items()
        if name not in IGNORED_HEADERS
    }


def encode_query(pairs: Iterable[Tuple[str, str]]) -> str:
    """
    Encode raw (key, value) pairs into a query string, keeping their order.

    Args:
        pairs: Raw query parameters

    Returns:
        str: ``key=value`` pairs joined by ``&``
    """
    return "&".join(f"{escape_query(key)}={escape_query(value)}" for key, value in pairs)


def canonical_query_string(encoded_query: Optional[str]) -> str:
    """
    Canonicalize an encoded query string.

    Parameters are grouped by key and the keys sorted. Values of a
    repeated key keep their input order; they are deliberately not sorted
    because the servers we talk to verify multi-valued keys in request
    order.

    Args:
        encoded_query: Already escaped query (without ``?``)

    Returns:
        str: Canonical query string, empty when there is no query
    """
    if not encoded_query:
        return ""

    grouped: Dict[str, List[str]] = {}
    for token in encoded_query.split("&"):
        if not token:
            continue
        key, _, value = token.partition("=")
        grouped.setdefault(key, []).append(value)

    return "&".join(
        f"{key}={value}"
        for key in sorted(grouped)
        for value in grouped[key]
    )


def build_canonical_request(
    context: SigningContext,
    mode: SigningMode = SigningMode.STANDARD
) -> Tuple[str, str]:
    """
    Build canonical request for signing.

    Args:
        context: Signing context
        mode: Signing mode

    Returns:
        tuple: (canonical request string, lower-case hex SHA-256 of it)
    """
    canonical = CanonicalRequestBuilder(context, mode).build()
    return canonical.text, canonical.hash
