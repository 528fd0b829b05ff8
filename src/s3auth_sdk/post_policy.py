"""
POST policy signing for browser form uploads

A ``PostPolicy`` describes what a browser is allowed to upload; building it
for a set of credentials produces a ``PostPolicyDocument`` whose base64 JSON
is signed with the S3 V4 signing key. The resulting form fields are submitted
as a multipart form together with the file content.
"""

import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .exceptions import S3AuthSDKError, SigningError, ValidationError
from .signing.types import SigningErrorCodes, SIGN_V4_ALGORITHM
from .signing.utils import ensure_utc, to_amz_date, to_expiration_date, utc_now
from .signing.key_derivation import credential_string
from .signing.signing_config import validate_credentials
from .signing.s3v4_signer import post_presign_signature

logger = logging.getLogger(__name__)

SUCCESS_ACTION_STATUSES = frozenset({200, 201, 204})

Condition = Tuple[str, ...]


def _policy_error(message: str, details: Optional[Dict[str, Any]] = None) -> ValidationError:
    return ValidationError(message, SigningErrorCodes.INVALID_POLICY, details)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class PostPolicy:
    """
    Upload conditions of a browser form upload.

    Attributes:
        bucket: Bucket name
        object_name: Object name, or key prefix when ``starts_with`` is set
        expiration: Time after which the policy is rejected
        starts_with: Match the key by prefix instead of exactly
        content_type: Required ``Content-Type`` of the upload
        content_encoding: Required ``Content-Encoding`` of the upload
        success_action_status: Status returned on success (200, 201 or 204)
        content_length_range: Inclusive (min, max) upload size in bytes
        content_length: Exact upload size, shortcut for an equal range
    """
    bucket: str
    object_name: str
    expiration: datetime
    starts_with: bool = False
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    success_action_status: Optional[int] = None
    content_length_range: Optional[Tuple[int, int]] = None
    content_length: Optional[int] = None

    def __post_init__(self):
        """Validate policy"""
        if not self.bucket or not isinstance(self.bucket, str):
            raise _policy_error("Bucket name is required")

        if not self.object_name or not isinstance(self.object_name, str):
            raise _policy_error("Object name or prefix is required")

        if not isinstance(self.expiration, datetime):
            raise _policy_error(
                "Expiration date is required",
                {"expiration_type": type(self.expiration).__name__}
            )

        if self.content_type is not None and not self.content_type:
            raise _policy_error("Content type cannot be empty")

        if self.content_encoding is not None and not self.content_encoding:
            raise _policy_error("Content encoding cannot be empty")

        if (self.success_action_status is not None
                and (isinstance(self.success_action_status, bool)
                     or self.success_action_status not in SUCCESS_ACTION_STATUSES)):
            raise _policy_error(
                "Invalid action status, acceptable values are 200, 201, or 204",
                {"success_action_status": str(self.success_action_status)}
            )

        if self.content_length_range is not None:
            if (isinstance(self.content_length_range, (str, bytes))
                    or not isinstance(self.content_length_range, (tuple, list))
                    or len(self.content_length_range) != 2):
                raise _policy_error(
                    "Content length range must be a (start, end) pair",
                    {"content_length_range": repr(self.content_length_range)}
                )

        if self.content_length is not None:
            if not _is_positive_int(self.content_length):
                raise _policy_error(
                    "Content length must be a positive integer",
                    {"content_length": str(self.content_length)}
                )
            exact_range = (self.content_length, self.content_length)
            if self.content_length_range is not None and tuple(self.content_length_range) != exact_range:
                raise _policy_error("Content length conflicts with content length range")
            object.__setattr__(self, 'content_length_range', exact_range)

        if self.content_length_range is not None:
            start, end = self.content_length_range
            if not _is_positive_int(start) or not _is_positive_int(end):
                raise _policy_error(
                    "Content length range bounds must be positive integers",
                    {"start": str(start), "end": str(end)}
                )
            if start > end:
                raise _policy_error(
                    "Start range is higher than end range",
                    {"start": start, "end": end}
                )
            object.__setattr__(self, 'content_length_range', (start, end))

    def build(self, access_key: str, region: str, now: datetime) -> 'PostPolicyDocument':
        """
        Build the policy document for a set of credentials.

        Args:
            access_key: Access key
            region: Region
            now: Signing time

        Returns:
            PostPolicyDocument: Ordered conditions and the matching form fields
        """
        conditions = [("eq", "$bucket", self.bucket)]
        fields = {"bucket": self.bucket, "key": self.object_name}

        key_operator = "starts-with" if self.starts_with else "eq"
        conditions.append((key_operator, "$key", self.object_name))

        if self.content_type is not None:
            conditions.append(("eq", "$Content-Type", self.content_type))
            fields["Content-Type"] = self.content_type

        if self.content_encoding is not None:
            conditions.append(("eq", "$Content-Encoding", self.content_encoding))
            fields["Content-Encoding"] = self.content_encoding

        if self.success_action_status is not None:
            status = str(self.success_action_status)
            conditions.append(("eq", "$success_action_status", status))
            fields["success_action_status"] = status

        if self.content_length_range is not None:
            start, end = self.content_length_range
            conditions.append(("content-length-range", str(start), str(end)))

        credential = credential_string(access_key, now, region)
        amz_date = to_amz_date(now)

        conditions.append(("eq", "$x-amz-algorithm", SIGN_V4_ALGORITHM))
        conditions.append(("eq", "$x-amz-credential", credential))
        conditions.append(("eq", "$x-amz-date", amz_date))
        fields["x-amz-algorithm"] = SIGN_V4_ALGORITHM
        fields["x-amz-credential"] = credential
        fields["x-amz-date"] = amz_date

        return PostPolicyDocument(
            expiration=self.expiration,
            conditions=tuple(conditions),
            fields=fields
        )


@dataclass(frozen=True)
class PostPolicyDocument:
    """
    Built policy document.

    Attributes:
        expiration: Policy expiration
        conditions: Ordered condition clauses
        fields: Form fields matching the conditions, without policy and signature
    """
    expiration: datetime
    conditions: Tuple[Condition, ...]
    fields: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expiration": to_expiration_date(self.expiration),
            "conditions": [list(condition) for condition in self.conditions],
        }

    def to_json(self) -> str:
        """Compact JSON document."""
        return json.dumps(self.to_dict(), separators=(',', ':'), ensure_ascii=False)

    def to_base64(self) -> str:
        """Base64 of the UTF-8 JSON document, the string that gets signed."""
        return base64.b64encode(self.to_json().encode('utf-8')).decode('ascii')


def build_form_data(
    policy: PostPolicy,
    access_key: str,
    secret_key: str,
    region: str,
    now: Optional[datetime] = None
) -> Dict[str, str]:
    """
    Build the signed form fields of a browser upload.

    Args:
        policy: Upload policy
        access_key: Access key
        secret_key: Secret key
        region: Region
        now: Signing time, defaults to now

    Returns:
        dict: Form field name to value, including ``policy`` and
        ``x-amz-signature``

    Raises:
        ConfigurationError: Missing access key, secret key or region
        SigningError: If signing fails
    """
    validate_credentials(access_key, secret_key, region)
    signing_time = ensure_utc(now) if now is not None else utc_now()

    try:
        document = policy.build(access_key, region, signing_time)
        encoded_policy = document.to_base64()
        signature = post_presign_signature(encoded_policy, secret_key, signing_time, region)

        form_data = dict(document.fields)
        form_data["policy"] = encoded_policy
        form_data["x-amz-signature"] = signature

        logger.debug(f"Signed POST policy for {policy.bucket}/{policy.object_name}")
        return form_data

    except Exception as e:
        if isinstance(e, S3AuthSDKError):
            raise

        raise SigningError(
            f"POST policy signing failed: {e}",
            SigningErrorCodes.SIGNING_FAILED,
            {"original_error": str(e)}
        )
