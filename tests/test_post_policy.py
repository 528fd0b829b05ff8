"""
Test suite for POST policy signing

This module tests policy validation, condition ordering and the signed
form fields of browser uploads.
"""

import base64
import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from s3auth_sdk.post_policy import PostPolicy, PostPolicyDocument, build_form_data
from s3auth_sdk.signing import derive_signing_key, compute_signature
from s3auth_sdk.exceptions import ConfigurationError, ValidationError

from conftest import ACCESS_KEY, REGION, SECRET_KEY

CREDENTIAL = f"{ACCESS_KEY}/20130524/us-east-1/s3/aws4_request"


@pytest.fixture
def expiration(signing_time):
    return signing_time + timedelta(days=7)


@pytest.fixture
def policy(expiration):
    return PostPolicy(bucket="examplebucket", object_name="uploads/photo.jpg", expiration=expiration)


def decode_policy(form_data):
    return json.loads(base64.b64decode(form_data["policy"]))


class TestPostPolicyValidation:
    """Test policy validation on construction"""

    def test_valid_policy(self, policy):
        """Test a minimal valid policy"""
        assert policy.starts_with is False
        assert policy.content_length_range is None

    @pytest.mark.parametrize("field_name", ["bucket", "object_name"])
    def test_empty_names(self, policy, field_name):
        """Test that bucket and object name are required"""
        with pytest.raises(ValidationError):
            replace(policy, **{field_name: ""})

    def test_missing_expiration(self, policy):
        """Test that an expiration date is required"""
        with pytest.raises(ValidationError):
            replace(policy, expiration=None)

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_success_action_status(self, policy, status):
        """Test the accepted success action statuses"""
        assert replace(policy, success_action_status=status).success_action_status == status

    @pytest.mark.parametrize("status", [0, 202, 302, 404, True])
    def test_invalid_success_action_status(self, policy, status):
        """Test that other statuses are rejected"""
        with pytest.raises(ValidationError):
            replace(policy, success_action_status=status)

    def test_content_length_range(self, policy):
        """Test a valid content length range"""
        assert replace(policy, content_length_range=(10, 20)).content_length_range == (10, 20)
        assert replace(policy, content_length_range=(5, 5)).content_length_range == (5, 5)

    @pytest.mark.parametrize("bounds", [(0, 20), (10, 0), (-1, 5), (20, 10)])
    def test_invalid_content_length_range(self, policy, bounds):
        """Test that bounds must satisfy 0 < start <= end"""
        with pytest.raises(ValidationError):
            replace(policy, content_length_range=bounds)

    @pytest.mark.parametrize("bounds", [(10,), (1, 2, 3), 5, "10", ()])
    def test_malformed_content_length_range(self, policy, bounds):
        """Test that the range must be a start and end pair"""
        with pytest.raises(ValidationError) as exc_info:
            replace(policy, content_length_range=bounds)

        assert exc_info.value.error_code == "INVALID_POLICY"

    def test_malformed_range_with_content_length(self, policy):
        """Test that a malformed range is rejected before the length shortcut"""
        with pytest.raises(ValidationError):
            replace(policy, content_length=10, content_length_range=(10,))

    def test_content_length_shortcut(self, policy):
        """Test that an exact length sets an equal range"""
        assert replace(policy, content_length=1024).content_length_range == (1024, 1024)

    def test_conflicting_content_length(self, policy):
        """Test that an exact length must agree with an explicit range"""
        with pytest.raises(ValidationError):
            replace(policy, content_length=50, content_length_range=(10, 20))

    def test_empty_content_type(self, policy):
        """Test that an empty content type is rejected"""
        with pytest.raises(ValidationError):
            replace(policy, content_type="")


class TestPostPolicyDocument:
    """Test the built policy document"""

    def test_condition_order(self, policy, signing_time):
        """Test that conditions are emitted in their fixed order"""
        full = replace(
            policy,
            content_type="image/jpeg",
            content_encoding="gzip",
            success_action_status=201,
            content_length_range=(10, 20)
        )
        document = full.build(ACCESS_KEY, REGION, signing_time)

        assert isinstance(document, PostPolicyDocument)
        assert document.conditions == (
            ("eq", "$bucket", "examplebucket"),
            ("eq", "$key", "uploads/photo.jpg"),
            ("eq", "$Content-Type", "image/jpeg"),
            ("eq", "$Content-Encoding", "gzip"),
            ("eq", "$success_action_status", "201"),
            ("content-length-range", "10", "20"),
            ("eq", "$x-amz-algorithm", "AWS4-HMAC-SHA256"),
            ("eq", "$x-amz-credential", CREDENTIAL),
            ("eq", "$x-amz-date", "20130524T000000Z"),
        )

    def test_starts_with(self, policy, signing_time):
        """Test prefix matching of the object key"""
        document = replace(policy, object_name="uploads/", starts_with=True).build(
            ACCESS_KEY, REGION, signing_time
        )

        assert document.conditions[1] == ("starts-with", "$key", "uploads/")

    def test_json_layout(self, policy, expiration, signing_time):
        """Test the compact JSON document"""
        document = policy.build(ACCESS_KEY, REGION, signing_time)

        assert document.to_json().startswith('{"expiration":"2013-05-31T00:00:00.000Z","conditions":[')
        assert json.loads(base64.b64decode(document.to_base64())) == document.to_dict()


class TestBuildFormData:
    """Test signed form fields"""

    def test_content_length_range_round_trip(self, policy, signing_time):
        """Test that the range condition survives base64 decoding"""
        form_data = build_form_data(
            replace(policy, content_length_range=(10, 20)),
            ACCESS_KEY, SECRET_KEY, REGION,
            now=signing_time
        )

        assert ["content-length-range", "10", "20"] in decode_policy(form_data)["conditions"]

    def test_form_fields(self, policy, signing_time):
        """Test the returned field mapping"""
        form_data = build_form_data(
            replace(policy, content_type="image/jpeg", success_action_status=204),
            ACCESS_KEY, SECRET_KEY, REGION,
            now=signing_time
        )

        assert set(form_data) == {
            "bucket", "key", "Content-Type", "success_action_status",
            "x-amz-algorithm", "x-amz-credential", "x-amz-date",
            "policy", "x-amz-signature",
        }
        assert form_data["bucket"] == "examplebucket"
        assert form_data["key"] == "uploads/photo.jpg"
        assert form_data["success_action_status"] == "204"
        assert form_data["x-amz-credential"] == CREDENTIAL
        assert form_data["x-amz-date"] == "20130524T000000Z"
        assert decode_policy(form_data)["conditions"][0] == ["eq", "$bucket", "examplebucket"]

    def test_signature_over_base64_policy(self, policy, signing_time):
        """Test that the signature covers the base64 policy string"""
        form_data = build_form_data(policy, ACCESS_KEY, SECRET_KEY, REGION, now=signing_time)
        signing_key = derive_signing_key(SECRET_KEY, signing_time, REGION)

        assert form_data["x-amz-signature"] == compute_signature(signing_key, form_data["policy"])

    def test_defaults_to_current_time(self, policy):
        """Test that the signing time defaults to now"""
        before = datetime.now(timezone.utc).replace(microsecond=0)
        form_data = build_form_data(policy, ACCESS_KEY, SECRET_KEY, REGION)
        after = datetime.now(timezone.utc)

        signed_at = datetime.strptime(form_data["x-amz-date"], "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)
        assert before <= signed_at <= after

    def test_secret_key_not_in_fields(self, policy, signing_time):
        """Test that the secret key never appears in the form"""
        form_data = build_form_data(policy, ACCESS_KEY, SECRET_KEY, REGION, now=signing_time)

        assert all(SECRET_KEY not in value for value in form_data.values())

    def test_missing_region(self, policy, signing_time):
        """Test that a missing region is a configuration error"""
        with pytest.raises(ConfigurationError):
            build_form_data(policy, ACCESS_KEY, SECRET_KEY, "", now=signing_time)
