"""
S3 Signature Version 4 signer

This module provides the signer orchestrating canonical request
construction and key derivation into the four signing operations:
header-based request signing, presigned URLs, chunk signing for streaming
uploads and the seed signature that starts a chunk chain.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Union

from ..exceptions import S3AuthSDKError, SigningError, ValidationError
from .types import (
    PresignedUrl,
    SignatureResult,
    SigningContext,
    SigningErrorCodes,
    SigningMode,
    SIGN_V4_ALGORITHM,
    SIGN_V4_CHUNK_ALGORITHM,
    UNSIGNED_PAYLOAD,
    EMPTY_SHA256,
    PRESIGN_SIGNED_HEADERS,
)
from .utils import (
    coerce_timestamp,
    escape_path,
    is_sha256_hex,
    to_amz_date,
    PerformanceTimer,
)
from .canonical_request import CanonicalRequestBuilder, encode_query, select_headers
from .key_derivation import credential_scope, derive_signing_key, compute_signature

logger = logging.getLogger(__name__)


class S3V4Signer:
    """
    S3 Signature Version 4 signer

    The signer holds no state; every call derives its own signing key and
    discards it on return, so a single instance can be shared between
    threads for independent requests.
    """

    def sign_request(self, context: SigningContext) -> SignatureResult:
        """
        Sign a request with an ``Authorization`` header.

        Args:
            context: Validated signing context

        Returns:
            SignatureResult: Authorization value and the augmented headers

        Raises:
            ValidationError: If the request has no signable headers
            SigningError: If signing fails
        """
        timer = PerformanceTimer()

        try:
            canonical = CanonicalRequestBuilder(context, SigningMode.STANDARD).build()
            scope = credential_scope(context.timestamp, context.region)
            string_to_sign = self._string_to_sign(context.timestamp, str(scope), canonical.hash)
            signature = self._sign(context.secret_key, context.timestamp, context.region, string_to_sign)

            credential = scope.credential(context.access_key)
            authorization = (
                f"{SIGN_V4_ALGORITHM} Credential={credential}, "
                f"SignedHeaders={canonical.signed_headers}, Signature={signature}"
            )

            headers = dict(context.headers)
            headers['authorization'] = authorization

            logger.debug(f"Canonical request:\n{canonical.text}")
            logger.debug(f"Signed {context.method.value} {context.path} in {timer.elapsed_ms():.2f}ms")

            return SignatureResult(
                authorization=authorization,
                signature=signature,
                credential=credential,
                signed_headers=canonical.signed_headers,
                headers=headers,
                canonical_request=canonical,
                string_to_sign=string_to_sign
            )

        except Exception as e:
            if isinstance(e, S3AuthSDKError):
                raise

            raise SigningError(
                f"Request signing failed: {e}",
                SigningErrorCodes.SIGNING_FAILED,
                {"original_error": str(e)}
            )

    def presign_url(self, context: SigningContext, expires: int) -> PresignedUrl:
        """
        Create a presigned URL.

        The ``X-Amz-*`` parameters are appended to the query in a fixed
        order before canonicalization, only ``host`` is signed and the
        payload is ``UNSIGNED-PAYLOAD``. No upper bound is enforced on
        ``expires``; the server applies its own maximum.

        Args:
            context: Validated signing context
            expires: Validity in seconds, a positive integer

        Returns:
            PresignedUrl: URL ending with ``X-Amz-Signature``

        Raises:
            ValidationError: If expires is not a positive integer or there is no host
            SigningError: If signing fails
        """
        if isinstance(expires, bool) or not isinstance(expires, int) or expires <= 0:
            raise ValidationError(
                "Presigned URL expiry must be a positive integer",
                SigningErrorCodes.INVALID_EXPIRY,
                {"expires": str(expires)}
            )

        try:
            scope = credential_scope(context.timestamp, context.region)
            amz_date = to_amz_date(context.timestamp)

            presign_query = context.query + (
                ("X-Amz-Algorithm", SIGN_V4_ALGORITHM),
                ("X-Amz-Credential", scope.credential(context.access_key)),
                ("X-Amz-Date", amz_date),
                ("X-Amz-Expires", str(expires)),
                ("X-Amz-SignedHeaders", ";".join(PRESIGN_SIGNED_HEADERS)),
            )
            presign_context = replace(context, query=presign_query, payload_hash=UNSIGNED_PAYLOAD)

            canonical = CanonicalRequestBuilder(presign_context, SigningMode.PRESIGN).build()
            string_to_sign = self._string_to_sign(context.timestamp, str(scope), canonical.hash)
            signature = self._sign(context.secret_key, context.timestamp, context.region, string_to_sign)

            host = select_headers(presign_context, SigningMode.PRESIGN)['host']
            url = (
                f"{context.scheme}://{host}{escape_path(context.path)}"
                f"?{encode_query(presign_query)}&X-Amz-Signature={signature}"
            )

            logger.debug(f"Presigned {context.method.value} {context.path} for {expires}s")

            return PresignedUrl(
                url=url,
                signature=signature,
                expires=expires,
                canonical_request=canonical,
                string_to_sign=string_to_sign
            )

        except Exception as e:
            if isinstance(e, S3AuthSDKError):
                raise

            raise SigningError(
                f"URL presigning failed: {e}",
                SigningErrorCodes.SIGNING_FAILED,
                {"original_error": str(e)}
            )

    def sign_chunk(
        self,
        chunk_payload_hash: str,
        date: Union[datetime, str],
        region: str,
        secret_key: str,
        prev_signature: str
    ) -> str:
        """
        Sign one chunk of a streaming upload.

        Chunk N must be signed with the signature of chunk N-1 (or the seed
        signature for the first chunk), so calls for one upload have to be
        made strictly in order.

        Args:
            chunk_payload_hash: Hex SHA-256 of the chunk data
            date: Signing time of the upload
            region: Region
            secret_key: Secret key
            prev_signature: Previous chunk signature or the seed signature

        Returns:
            str: Hex chunk signature

        Raises:
            ValidationError: If the chunk hash or previous signature is invalid
            FormatError: If the date cannot be parsed
            ConfigurationError: If region or secret key is missing
        """
        if not is_sha256_hex(chunk_payload_hash):
            raise ValidationError(
                "Chunk payload hash must be a lower-case hex SHA-256",
                SigningErrorCodes.INVALID_PAYLOAD_HASH,
                {"chunk_payload_hash": str(chunk_payload_hash)}
            )

        if not prev_signature or not isinstance(prev_signature, str):
            raise ValidationError(
                "Previous signature is required for chunk signing",
                SigningErrorCodes.MISSING_PREVIOUS_SIGNATURE
            )

        signing_time = coerce_timestamp(date)
        scope = credential_scope(signing_time, region)

        # The empty-string hash stands in for chunk headers, which S3 does not send.
        string_to_sign = "\n".join([
            SIGN_V4_CHUNK_ALGORITHM,
            to_amz_date(signing_time),
            str(scope),
            prev_signature,
            EMPTY_SHA256,
            chunk_payload_hash,
        ])

        return self._sign(secret_key, signing_time, region, string_to_sign)

    def seed_chunk_signature(self, context: SigningContext) -> str:
        """
        Compute the seed signature that starts a chunk chain.

        Computed exactly like ``sign_request``'s signature, but only meant as
        ``prev_signature`` for the first chunk.

        Args:
            context: Signing context of the streaming request

        Returns:
            str: Hex seed signature
        """
        return self.sign_request(context).signature

    def post_presign_signature(
        self,
        string_to_sign: str,
        secret_key: str,
        date: datetime,
        region: str
    ) -> str:
        """
        Sign a base64 POST policy.

        Returns:
            str: Hex signature
        """
        return self._sign(secret_key, date, region, string_to_sign)

    @staticmethod
    def _string_to_sign(timestamp: datetime, scope: str, canonical_hash: str) -> str:
        return f"{SIGN_V4_ALGORITHM}\n{to_amz_date(timestamp)}\n{scope}\n{canonical_hash}"

    @staticmethod
    def _sign(secret_key: str, date: datetime, region: str, string_to_sign: str) -> str:
        signing_key = derive_signing_key(secret_key, date, region)
        return compute_signature(signing_key, string_to_sign)


def create_signer() -> S3V4Signer:
    """
    Create a new S3 V4 signer.

    Returns:
        S3V4Signer: Signer instance
    """
    return S3V4Signer()


def sign_request(context: SigningContext) -> SignatureResult:
    """Sign a request, see ``S3V4Signer.sign_request``."""
    return create_signer().sign_request(context)


def presign_url(context: SigningContext, expires: int) -> PresignedUrl:
    """Presign a URL, see ``S3V4Signer.presign_url``."""
    return create_signer().presign_url(context, expires)


def sign_chunk(
    chunk_payload_hash: str,
    date: Union[datetime, str],
    region: str,
    secret_key: str,
    prev_signature: str
) -> str:
    """Sign a chunk, see ``S3V4Signer.sign_chunk``."""
    return create_signer().sign_chunk(chunk_payload_hash, date, region, secret_key, prev_signature)


def seed_chunk_signature(context: SigningContext) -> str:
    """Compute a chunk seed signature, see ``S3V4Signer.seed_chunk_signature``."""
    return create_signer().seed_chunk_signature(context)


def post_presign_signature(string_to_sign: str, secret_key: str, date: datetime, region: str) -> str:
    """Sign a POST policy, see ``S3V4Signer.post_presign_signature``."""
    return create_signer().post_presign_signature(string_to_sign, secret_key, date, region)
