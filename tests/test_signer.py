"""
Test suite for S3 Signature Version 4 signing

This module tests header-based request signing, presigned URLs and chunk
signing against the published AWS examples, plus the determinism and
chaining properties the signer guarantees.
"""

import pytest

from s3auth_sdk.signing import (
    S3V4Signer,
    create_signer,
    create_signing_context,
    sign_request,
    presign_url,
    sign_chunk,
    seed_chunk_signature,
    sha256_hex,
    SigningMode,
    EMPTY_SHA256,
    UNSIGNED_PAYLOAD,
    STREAMING_PAYLOAD,
)
from s3auth_sdk.exceptions import ConfigurationError, FormatError, ValidationError

from conftest import (
    ACCESS_KEY, AMZ_DATE, BUCKET_HOST, REGION, SECRET_KEY,
    CHUNK_SEED, CHUNK_1, CHUNK_2, CHUNK_FINAL,
)

CREDENTIAL = f"{ACCESS_KEY}/20130524/us-east-1/s3/aws4_request"


def bucket_context(credential_kwargs, method="GET", path="/", query=None, headers=None, **kwargs):
    merged = {
        "Host": BUCKET_HOST,
        "x-amz-content-sha256": EMPTY_SHA256,
        "x-amz-date": AMZ_DATE,
    }
    merged.update(headers or {})
    return create_signing_context(
        method,
        host=BUCKET_HOST,
        path=path,
        query=query,
        headers=merged,
        **credential_kwargs,
        **kwargs
    )


class TestKnownAnswers:
    """Test signatures against the published AWS examples"""

    def test_get_object(self, credential_kwargs, get_object_headers):
        """Test GET object with a range header"""
        context = create_signing_context(
            "GET",
            f"https://{BUCKET_HOST}/test.txt",
            headers=get_object_headers,
            **credential_kwargs
        )
        result = sign_request(context)

        assert result.authorization == (
            f"AWS4-HMAC-SHA256 Credential={CREDENTIAL}, "
            "SignedHeaders=host;range;x-amz-content-sha256;x-amz-date, "
            "Signature=f0e8bdb87c964420e857bd35b5d6ed310bd44f0170aba48dd91039c6036bdb41"
        )
        assert result.headers["authorization"] == result.authorization

    def test_get_object_canonical_request(self, credential_kwargs, get_object_headers):
        """Test the canonical request of the GET object example"""
        context = create_signing_context(
            "GET",
            f"https://{BUCKET_HOST}/test.txt",
            headers=get_object_headers,
            **credential_kwargs
        )
        result = sign_request(context)

        assert result.canonical_request.text == (
            "GET\n"
            "/test.txt\n"
            "\n"
            f"host:{BUCKET_HOST}\n"
            "range:bytes=0-9\n"
            f"x-amz-content-sha256:{EMPTY_SHA256}\n"
            f"x-amz-date:{AMZ_DATE}\n"
            "\n"
            "host;range;x-amz-content-sha256;x-amz-date\n"
            f"{EMPTY_SHA256}"
        )
        assert result.string_to_sign.startswith(
            f"AWS4-HMAC-SHA256\n{AMZ_DATE}\n20130524/us-east-1/s3/aws4_request\n"
        )
        assert result.string_to_sign.endswith(result.canonical_request.hash)

    def test_put_object(self, credential_kwargs):
        """Test PUT object with an escaped path and storage class"""
        context = bucket_context(
            credential_kwargs,
            method="PUT",
            path="/test$file.text",
            headers={
                "Date": "Fri, 24 May 2013 00:00:00 GMT",
                "x-amz-storage-class": "REDUCED_REDUNDANCY",
                "x-amz-content-sha256": "44ce7dd67c959e0d3524ffac1771dfbba87d2b6b4b4e99e42034a8b803f8b072",
            }
        )
        result = sign_request(context)

        assert result.signed_headers == "date;host;x-amz-content-sha256;x-amz-date;x-amz-storage-class"
        assert "\n/test%24file.text\n" in result.canonical_request.text
        assert result.signature == "98ad721746da40c64f1a55b78f14c238d841ea1380cd77a1b5971af0ece108bd"

    def test_get_bucket_lifecycle(self, credential_kwargs):
        """Test a sub-resource query parameter without a value"""
        context = bucket_context(credential_kwargs, query={"lifecycle": ""})
        result = sign_request(context)

        assert result.canonical_request.canonical_query_string == "lifecycle="
        assert result.signature == "fea454ca298b7da1c68078a5d1bdbfbbe0d65c699e0f91ac7a200a0136783543"

    def test_list_objects(self, credential_kwargs):
        """Test a query with several parameters"""
        context = bucket_context(credential_kwargs, query=[("prefix", "J"), ("max-keys", "2")])
        result = sign_request(context)

        assert result.canonical_request.canonical_query_string == "max-keys=2&prefix=J"
        assert result.signature == "34b48302e7b5fa45bde8084f4b7868a86f0a534bc59db6670ed5711ef69dc6f7"

    def test_presigned_get_object(self, credential_kwargs):
        """Test the presigned URL example"""
        context = create_signing_context(
            "GET",
            f"https://{BUCKET_HOST}/test.txt",
            payload_hash=UNSIGNED_PAYLOAD,
            timestamp=AMZ_DATE,
            **credential_kwargs
        )
        presigned = presign_url(context, 86400)

        assert presigned.signature == "aeeed9bbccd4d02ee5c0109b86d86835f995330da4c265957d157751f604d404"
        assert presigned.url == (
            f"https://{BUCKET_HOST}/test.txt"
            "?X-Amz-Algorithm=AWS4-HMAC-SHA256"
            f"&X-Amz-Credential={ACCESS_KEY}%2F20130524%2Fus-east-1%2Fs3%2Faws4_request"
            f"&X-Amz-Date={AMZ_DATE}"
            "&X-Amz-Expires=86400"
            "&X-Amz-SignedHeaders=host"
            f"&X-Amz-Signature={presigned.signature}"
        )
        assert str(presigned) == presigned.url

    def test_chunk_chain(self):
        """Test the streaming upload chunk signatures"""
        chunk1 = sign_chunk(sha256_hex(b"a" * 65536), AMZ_DATE, REGION, SECRET_KEY, CHUNK_SEED)
        chunk2 = sign_chunk(sha256_hex(b"a" * 1024), AMZ_DATE, REGION, SECRET_KEY, chunk1)
        final = sign_chunk(EMPTY_SHA256, AMZ_DATE, REGION, SECRET_KEY, chunk2)

        assert chunk1 == CHUNK_1
        assert chunk2 == CHUNK_2
        assert final == CHUNK_FINAL


class TestRequestSigning:
    """Test header-based request signing"""

    def test_determinism(self, credential_kwargs, get_object_headers):
        """Test that identical inputs give identical authorization values"""
        first = sign_request(bucket_context(credential_kwargs, path="/test.txt", headers=get_object_headers))
        second = sign_request(bucket_context(credential_kwargs, path="/test.txt", headers=get_object_headers))

        assert first.authorization == second.authorization

    def test_avalanche(self, credential_kwargs):
        """Test that changing one character of a signed header changes the signature"""
        original = sign_request(bucket_context(credential_kwargs, headers={"Range": "bytes=0-9"}))
        mutated = sign_request(bucket_context(credential_kwargs, headers={"Range": "bytes=0-8"}))

        assert original.signature != mutated.signature

    def test_ignored_headers_do_not_change_signature(self, credential_kwargs):
        """Test that ignored headers are excluded from the signature"""
        plain = sign_request(bucket_context(credential_kwargs))
        extra = sign_request(bucket_context(credential_kwargs, headers={
            "Content-Type": "text/plain",
            "Content-Length": "42",
            "User-Agent": "test-agent/1.0",
        }))

        assert plain.signature == extra.signature
        assert extra.signed_headers == "host;x-amz-content-sha256;x-amz-date"

    def test_header_value_whitespace_trimmed(self, credential_kwargs):
        """Test that surrounding whitespace of header values is not signed"""
        plain = sign_request(bucket_context(credential_kwargs, headers={"Range": "bytes=0-9"}))
        padded = sign_request(bucket_context(credential_kwargs, headers={"Range": "  bytes=0-9 "}))

        assert plain.signature == padded.signature

    def test_original_headers_kept(self, credential_kwargs):
        """Test that the result carries every request header plus authorization"""
        result = sign_request(bucket_context(credential_kwargs, headers={"Content-Type": "text/plain"}))

        assert result.headers["content-type"] == "text/plain"
        assert result.headers["host"] == BUCKET_HOST
        assert "authorization" in result.headers

    def test_no_signable_headers(self, credential_kwargs):
        """Test that a request without signable headers is rejected"""
        context = create_signing_context(
            "GET",
            host=BUCKET_HOST,
            headers={"Content-Type": "text/plain"},
            payload_hash=EMPTY_SHA256,
            timestamp=AMZ_DATE,
            **credential_kwargs
        )

        with pytest.raises(ValidationError) as exc_info:
            sign_request(context)

        assert exc_info.value.error_code == "NO_SIGNABLE_HEADERS"

    def test_secret_key_not_in_result(self, credential_kwargs, get_object_headers):
        """Test that no output artifact contains the secret key"""
        context = bucket_context(credential_kwargs, headers=get_object_headers)
        result = sign_request(context)

        assert SECRET_KEY not in repr(context)
        assert SECRET_KEY not in repr(result)
        assert SECRET_KEY not in result.authorization

    def test_signer_instance(self, credential_kwargs):
        """Test that the signer class and module functions agree"""
        context = bucket_context(credential_kwargs)

        assert isinstance(create_signer(), S3V4Signer)
        assert S3V4Signer().sign_request(context).signature == sign_request(context).signature


class TestPresignedUrls:
    """Test presigned URL generation"""

    def test_expires_in_canonical_query(self, credential_kwargs):
        """Test that the expiry is part of the signed canonical query"""
        context = bucket_context(credential_kwargs, path="/test.txt")
        presigned = presign_url(context, 3600)

        assert "X-Amz-Expires=3600" in presigned.canonical_request.canonical_query_string
        assert presigned.canonical_request.mode == SigningMode.PRESIGN
        assert presigned.expires == 3600

    def test_signs_host_only(self, credential_kwargs):
        """Test that presigned URLs sign the host header only"""
        context = bucket_context(credential_kwargs, path="/test.txt", headers={"Range": "bytes=0-9"})
        presigned = presign_url(context, 3600)

        assert presigned.canonical_request.signed_headers == "host"
        assert presigned.canonical_request.text.endswith(f"\nhost\n{UNSIGNED_PAYLOAD}")

    def test_existing_query_kept(self, credential_kwargs):
        """Test that request parameters are carried into the URL"""
        context = bucket_context(
            credential_kwargs,
            path="/test.txt",
            query={"response-content-type": "text/plain"}
        )
        presigned = presign_url(context, 3600)

        assert "response-content-type=text%2Fplain" in presigned.url
        assert presigned.url.endswith(f"&X-Amz-Signature={presigned.signature}")

    def test_no_upper_bound_on_expiry(self, credential_kwargs):
        """Test that long expiry values are passed through unchanged"""
        presigned = presign_url(bucket_context(credential_kwargs), 30 * 24 * 3600)

        assert "X-Amz-Expires=2592000" in presigned.url

    @pytest.mark.parametrize("expires", [0, -1, 1.5, "3600", True, None])
    def test_invalid_expiry(self, credential_kwargs, expires):
        """Test that non-positive or non-integer expiry values are rejected"""
        with pytest.raises(ValidationError) as exc_info:
            presign_url(bucket_context(credential_kwargs), expires)

        assert exc_info.value.error_code == "INVALID_EXPIRY"

    def test_missing_host(self, credential_kwargs):
        """Test that a presigned URL needs a host"""
        context = create_signing_context(
            "GET",
            path="/test.txt",
            payload_hash=UNSIGNED_PAYLOAD,
            timestamp=AMZ_DATE,
            **credential_kwargs
        )

        with pytest.raises(ValidationError) as exc_info:
            presign_url(context, 3600)

        assert exc_info.value.error_code == "MISSING_HOST"


class TestChunkSigning:
    """Test chunk signing and seeding"""

    def test_chaining(self):
        """Test that a chunk signature depends on the previous signature"""
        hash1 = sha256_hex(b"first chunk")
        hash2 = sha256_hex(b"second chunk")

        chained = sign_chunk(hash2, AMZ_DATE, REGION, SECRET_KEY,
                             sign_chunk(hash1, AMZ_DATE, REGION, SECRET_KEY, CHUNK_SEED))
        direct = sign_chunk(hash2, AMZ_DATE, REGION, SECRET_KEY, CHUNK_SEED)

        assert chained != direct

    def test_seed_matches_request_signature(self, credential_kwargs):
        """Test that the seed signature is computed like a request signature"""
        context = bucket_context(
            credential_kwargs,
            method="PUT",
            path="/chunkObject.txt",
            headers={
                "Content-Encoding": "aws-chunked",
                "x-amz-content-sha256": STREAMING_PAYLOAD,
                "x-amz-decoded-content-length": "66560",
            }
        )

        assert seed_chunk_signature(context) == sign_request(context).signature

    def test_invalid_chunk_hash(self):
        """Test that the chunk hash must be a hex SHA-256"""
        with pytest.raises(ValidationError):
            sign_chunk("not-a-hash", AMZ_DATE, REGION, SECRET_KEY, CHUNK_SEED)

    def test_missing_previous_signature(self):
        """Test that the previous signature is required"""
        with pytest.raises(ValidationError) as exc_info:
            sign_chunk(EMPTY_SHA256, AMZ_DATE, REGION, SECRET_KEY, "")

        assert exc_info.value.error_code == "MISSING_PREVIOUS_SIGNATURE"

    def test_unparsable_date(self):
        """Test that an unparsable date is a format error"""
        with pytest.raises(FormatError):
            sign_chunk(EMPTY_SHA256, "2013-05-24", REGION, SECRET_KEY, CHUNK_SEED)

    def test_missing_region(self):
        """Test that a missing region is a configuration error"""
        with pytest.raises(ConfigurationError):
            sign_chunk(EMPTY_SHA256, AMZ_DATE, "", SECRET_KEY, CHUNK_SEED)

    def test_missing_secret_key(self):
        """Test that a missing secret key is a configuration error"""
        with pytest.raises(ConfigurationError):
            sign_chunk(EMPTY_SHA256, AMZ_DATE, REGION, "", CHUNK_SEED)
