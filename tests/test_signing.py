# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for SigV4 signing in s3request/signing.py."""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta, timezone

import pytest

from s3request.errors import InvalidExpiry
from s3request.models import (
    BytesBody,
    NoBody,
    Request,
    StreamBody,
    TextBody,
)
from s3request.signing import (
    UNSIGNED_PAYLOAD,
    Credentials,
    authorization_header,
    build_canonical_request,
    build_string_to_sign,
    canonical_headers_string,
    canonical_query_string,
    canonical_uri,
    derive_signing_key,
    get_scope,
    get_signed_headers,
    hash_payload,
    make_date_long,
    make_date_short,
    presign,
    sign_post_policy,
    uri_encode,
)
from tests import vectors


CREDENTIALS = Credentials(vectors.ACCESS_KEY, vectors.SECRET_KEY)


def _example_request(path: str, **headers: str) -> Request:
    """Request against the AWS example bucket with the usual headers."""
    request = Request("GET", f"https://{vectors.HOST}{path}")
    request.headers["Host"] = vectors.HOST
    for name, value in headers.items():
        request.headers[name.replace("_", "-")] = value
    request.headers["x-amz-content-sha256"] = vectors.EMPTY_SHA256
    request.headers["x-amz-date"] = make_date_long(vectors.DATE)
    return request


# ---------------------------------------------------------------------------
# Dates and digests
# ---------------------------------------------------------------------------


class TestDates:
    """Tests for make_date_long / make_date_short."""

    def test_long_format(self) -> None:
        """Long form is yyyyMMdd'T'HHmmss'Z'."""
        date = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert make_date_long(date) == "20260102T030405Z"

    def test_short_format(self) -> None:
        """Short form is yyyyMMdd."""
        date = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert make_date_short(date) == "20260102"

    def test_converted_to_utc(self) -> None:
        """Aware datetimes in other zones are converted to UTC."""
        date = datetime(
            2026, 1, 2, 1, 0, 0, tzinfo=timezone(timedelta(hours=3))
        )
        assert make_date_long(date) == "20260101T220000Z"
        assert make_date_short(date) == "20260101"

    def test_naive_treated_as_utc(self) -> None:
        """Naive datetimes are taken to be UTC."""
        assert make_date_long(datetime(2026, 1, 2)) == "20260102T000000Z"


class TestHashPayload:
    """Tests for hash_payload."""

    def test_no_body_is_empty_hash(self) -> None:
        """An absent body hashes like an empty one."""
        assert hash_payload(NoBody()) == vectors.EMPTY_SHA256

    def test_text_hashed_as_utf8(self) -> None:
        """Text is hashed over its UTF-8 encoding."""
        expected = hashlib.sha256("héllo".encode()).hexdigest()
        assert hash_payload(TextBody("héllo")) == expected

    def test_bytes(self) -> None:
        """Bytes are hashed as-is."""
        expected = hashlib.sha256(b"\x00\x01").hexdigest()
        assert hash_payload(BytesBody(b"\x00\x01")) == expected

    def test_stream_unsigned(self) -> None:
        """Streams are not consumed for hashing."""
        consumed = []

        def chunks():
            consumed.append(True)
            yield b"data"

        assert hash_payload(StreamBody(chunks())) == UNSIGNED_PAYLOAD
        assert consumed == []


# ---------------------------------------------------------------------------
# URI encoding
# ---------------------------------------------------------------------------


class TestUriEncode:
    """Tests for uri_encode."""

    def test_unreserved_chars_not_encoded(self) -> None:
        """Unreserved characters pass through unchanged."""
        assert uri_encode("abc123-_.~") == "abc123-_.~"

    def test_space_encoded_as_percent20(self) -> None:
        """Spaces are encoded as %20, not +."""
        assert uri_encode("hello world") == "hello%20world"

    def test_plus_encoded(self) -> None:
        """A literal plus is percent-encoded."""
        assert uri_encode("a+b") == "a%2Bb"

    def test_slash_encoded_by_default(self) -> None:
        """Forward slashes are encoded by default."""
        assert uri_encode("a/b") == "a%2Fb"

    def test_slash_preserved_when_requested(self) -> None:
        """Forward slashes preserved when encode_slash=False."""
        assert uri_encode("a/b", encode_slash=False) == "a/b"

    def test_uppercase_hex(self) -> None:
        """Hex digits in encoding are uppercase."""
        assert uri_encode("@") == "%40"

    def test_non_ascii_encoded_as_utf8(self) -> None:
        """Non-ASCII characters are encoded byte by byte."""
        assert uri_encode("é") == "%C3%A9"


# ---------------------------------------------------------------------------
# Canonical request pieces
# ---------------------------------------------------------------------------


class TestSignedHeaders:
    """Tests for get_signed_headers."""

    def test_excludes_authorization_and_sorts(self) -> None:
        """Host/X-Amz-Date/Authorization -> host, x-amz-date."""
        result = get_signed_headers(["Host", "X-Amz-Date", "Authorization"])
        assert result == ["host", "x-amz-date"]

    def test_excludes_all_ignored_headers(self) -> None:
        """content-length, content-type and user-agent are never signed."""
        result = get_signed_headers(
            [
                "Content-Length",
                "CONTENT-TYPE",
                "User-Agent",
                "range",
                "host",
            ]
        )
        assert result == ["host", "range"]

    def test_duplicates_collapsed(self) -> None:
        """Differently-cased duplicates appear once."""
        assert get_signed_headers(["Host", "host"]) == ["host"]


class TestCanonicalUri:
    """Tests for canonical_uri."""

    def test_empty_path_becomes_slash(self) -> None:
        """Empty path returns /."""
        assert canonical_uri("") == "/"

    def test_simple_path(self) -> None:
        """Simple path is unchanged."""
        assert canonical_uri("/bucket/key") == "/bucket/key"

    def test_pre_encoded_not_double_encoded(self) -> None:
        """Existing escapes are decoded before the single encoding."""
        assert canonical_uri("/bucket/test%24file.text") == (
            "/bucket/test%24file.text"
        )

    def test_raw_special_chars_encoded(self) -> None:
        """Raw reserved characters are encoded once."""
        assert canonical_uri("/bucket/my file$.txt") == (
            "/bucket/my%20file%24.txt"
        )

    def test_double_slashes_preserved(self) -> None:
        """S3 does not normalize paths."""
        assert canonical_uri("/bucket//key") == "/bucket//key"


class TestCanonicalQueryString:
    """Tests for canonical_query_string."""

    def test_empty_query(self) -> None:
        """Empty query returns empty string."""
        assert canonical_query_string("") == ""

    def test_sorted_params(self) -> None:
        """Parameters are sorted by name."""
        assert canonical_query_string("prefix=J&max-keys=2") == (
            "max-keys=2&prefix=J"
        )

    def test_bare_key_gets_equals(self) -> None:
        """Sub-resource markers become key= pairs."""
        assert canonical_query_string("lifecycle") == "lifecycle="

    def test_space_and_plus(self) -> None:
        """Spaces use %20; a form-encoded + is a space."""
        assert canonical_query_string("prefix=a%20b") == "prefix=a%20b"
        assert canonical_query_string("prefix=a+b") == "prefix=a%20b"

    def test_reserved_chars_encoded(self) -> None:
        """Slashes in values are encoded."""
        assert canonical_query_string("prefix=photos/2024") == (
            "prefix=photos%2F2024"
        )


class TestCanonicalHeaders:
    """Tests for canonical_headers_string."""

    def test_basic_headers(self) -> None:
        """Names are lower-cased, one line each, newline-terminated."""
        headers = [("Host", "example.com"), ("x-amz-date", "20260101T000000Z")]
        result = canonical_headers_string(headers, ["host", "x-amz-date"])
        assert result == "host:example.com\nx-amz-date:20260101T000000Z\n"

    def test_whitespace_trimming(self) -> None:
        """Leading/trailing whitespace and sequential spaces collapsed."""
        headers = [("Host", "  example.com  "), ("X-Custom", "a  b  c")]
        result = canonical_headers_string(headers, ["host", "x-custom"])
        assert result == "host:example.com\nx-custom:a b c\n"


class TestCanonicalRequest:
    """Tests for build_canonical_request."""

    def test_aws_get_object_example(self) -> None:
        """Matches the published canonical request byte for byte."""
        request = _example_request("/test.txt", range="bytes=0-9")
        signed = get_signed_headers(request.headers.keys())
        result = build_canonical_request(request, signed, vectors.EMPTY_SHA256)
        assert result == vectors.GET_OBJECT_CANONICAL_REQUEST

    def test_method_upper_cased(self) -> None:
        """Method is upper-cased."""
        request = Request("get", "https://example.com/")
        request.headers["host"] = "example.com"
        result = build_canonical_request(request, ["host"], UNSIGNED_PAYLOAD)
        assert result.startswith("GET\n/\n\n")
        assert result.endswith("\nhost\nUNSIGNED-PAYLOAD")

    def test_deterministic(self) -> None:
        """Identical inputs give identical output."""
        first = _example_request("/test.txt", range="bytes=0-9")
        second = _example_request("/test.txt", range="bytes=0-9")
        signed = ["host", "range", "x-amz-content-sha256", "x-amz-date"]
        assert build_canonical_request(
            first, signed, vectors.EMPTY_SHA256
        ) == build_canonical_request(second, signed, vectors.EMPTY_SHA256)


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


class TestStringToSign:
    """Tests for build_string_to_sign and get_scope."""

    def test_scope(self) -> None:
        """Scope is date/region/s3/aws4_request."""
        assert get_scope(vectors.DATE, "eu-west-1") == (
            "20130524/eu-west-1/s3/aws4_request"
        )

    def test_aws_get_object_example(self) -> None:
        """Matches the published string to sign."""
        result = build_string_to_sign(
            vectors.GET_OBJECT_CANONICAL_REQUEST, vectors.DATE, vectors.REGION
        )
        assert result == vectors.GET_OBJECT_STRING_TO_SIGN


class TestSigningKey:
    """Tests for derive_signing_key."""

    def test_matches_manual_chain(self) -> None:
        """Key is the four-stage HMAC-SHA256 chain."""

        def step(key: bytes, msg: str) -> bytes:
            return hmac.new(key, msg.encode(), hashlib.sha256).digest()

        expected = step(
            step(
                step(step(b"AWS4secret", "20260101"), "us-east-1"),
                "s3",
            ),
            "aws4_request",
        )
        date = datetime(2026, 1, 1, 12, tzinfo=UTC)
        assert derive_signing_key(date, "us-east-1", "secret") == expected

    def test_depends_on_region(self) -> None:
        """Different regions derive different keys."""
        date = datetime(2026, 1, 1, tzinfo=UTC)
        assert derive_signing_key(
            date, "us-east-1", "secret"
        ) != derive_signing_key(date, "eu-west-1", "secret")


class TestAuthorizationHeader:
    """Tests for authorization_header against the AWS examples."""

    def test_get_object(self) -> None:
        """GET object with a Range header."""
        request = _example_request("/test.txt", range="bytes=0-9")
        result = authorization_header(
            CREDENTIALS, request, vectors.DATE, vectors.REGION
        )
        assert result == vectors.GET_OBJECT_AUTHORIZATION

    def test_get_bucket_lifecycle(self) -> None:
        """GET bucket sub-resource."""
        request = _example_request("/?lifecycle")
        result = authorization_header(
            CREDENTIALS, request, vectors.DATE, vectors.REGION
        )
        assert "SignedHeaders=host;x-amz-content-sha256;x-amz-date" in result
        assert result.endswith(
            f"Signature={vectors.GET_LIFECYCLE_SIGNATURE}"
        )

    def test_list_objects(self) -> None:
        """GET bucket with query parameters."""
        request = _example_request("/?max-keys=2&prefix=J")
        result = authorization_header(
            CREDENTIALS, request, vectors.DATE, vectors.REGION
        )
        assert result.endswith(f"Signature={vectors.LIST_OBJECTS_SIGNATURE}")

    def test_ignored_headers_not_signed(self) -> None:
        """user-agent and content-type do not change the signature."""
        plain = _example_request("/test.txt", range="bytes=0-9")
        extra = _example_request("/test.txt", range="bytes=0-9")
        extra.headers["User-Agent"] = "test/1.0"
        extra.headers["Content-Type"] = "text/plain"
        assert authorization_header(
            CREDENTIALS, plain, vectors.DATE, vectors.REGION
        ) == authorization_header(
            CREDENTIALS, extra, vectors.DATE, vectors.REGION
        )

    def test_missing_content_sha256_is_unsigned(self) -> None:
        """Without x-amz-content-sha256 the payload is UNSIGNED-PAYLOAD."""
        request = Request("GET", f"https://{vectors.HOST}/test.txt")
        request.headers["host"] = vectors.HOST
        request.headers["x-amz-date"] = make_date_long(vectors.DATE)
        signed = ["host", "x-amz-date"]
        canonical = build_canonical_request(request, signed, UNSIGNED_PAYLOAD)
        key = derive_signing_key(
            vectors.DATE, vectors.REGION, vectors.SECRET_KEY
        )
        expected = hmac.new(
            key,
            build_string_to_sign(
                canonical, vectors.DATE, vectors.REGION
            ).encode(),
            hashlib.sha256,
        ).hexdigest()

        result = authorization_header(
            CREDENTIALS, request, vectors.DATE, vectors.REGION
        )
        assert "SignedHeaders=host;x-amz-date," in result
        assert result.endswith(f"Signature={expected}")


# ---------------------------------------------------------------------------
# Presigning
# ---------------------------------------------------------------------------


class TestPresign:
    """Tests for presign."""

    def _request(self) -> Request:
        request = Request("GET", f"https://{vectors.HOST}/test.txt")
        request.headers["host"] = vectors.HOST
        return request

    def test_aws_example(self) -> None:
        """Matches the published presigned URL."""
        url = presign(
            CREDENTIALS, self._request(), vectors.REGION, vectors.DATE, 86400
        )
        assert url == vectors.PRESIGNED_GET_URL

    def test_signature_last(self) -> None:
        """X-Amz-Signature is the final query parameter."""
        url = presign(
            CREDENTIALS, self._request(), vectors.REGION, vectors.DATE, 60
        )
        last = url.rsplit("&", 1)[1]
        assert last.startswith("X-Amz-Signature=")
        assert len(last.split("=", 1)[1]) == 64

    def test_session_token_included(self) -> None:
        """A session token adds X-Amz-Security-Token before signing."""
        creds = Credentials(vectors.ACCESS_KEY, vectors.SECRET_KEY, "tok/en")
        url = presign(creds, self._request(), vectors.REGION, vectors.DATE, 60)
        assert "&X-Amz-Security-Token=tok%2Fen&X-Amz-Signature=" in url

    def test_existing_query_kept(self) -> None:
        """Query parameters already on the URL are kept and signed."""
        request = Request(
            "GET", f"https://{vectors.HOST}/test.txt?versionId=abc"
        )
        request.headers["host"] = vectors.HOST
        url = presign(CREDENTIALS, request, vectors.REGION, vectors.DATE, 60)
        assert "/test.txt?versionId=abc&X-Amz-Algorithm=" in url

    def test_zero_expiry_rejected(self) -> None:
        """Expiry below one second fails."""
        with pytest.raises(InvalidExpiry):
            presign(
                CREDENTIALS, self._request(), vectors.REGION, vectors.DATE, 0
            )

    def test_too_long_expiry_rejected(self) -> None:
        """Expiry above seven days fails."""
        with pytest.raises(InvalidExpiry) as exc_info:
            presign(
                CREDENTIALS,
                self._request(),
                vectors.REGION,
                vectors.DATE,
                604801,
            )
        assert exc_info.value.expires == 604801

    def test_seven_days_accepted(self) -> None:
        """Exactly seven days is allowed."""
        url = presign(
            CREDENTIALS, self._request(), vectors.REGION, vectors.DATE, 604800
        )
        assert "X-Amz-Expires=604800" in url


class TestSignPostPolicy:
    """Tests for sign_post_policy."""

    def test_hmac_of_policy_with_signing_key(self) -> None:
        """Signature is HMAC-SHA256(signing key, base64 policy)."""
        policy = "eyJleHBpcmF0aW9uIjogIjIwMTMtMDgtMDZUMTI6MDA6MDAuMDAwWiJ9"
        key = derive_signing_key(vectors.DATE, vectors.REGION, "secret")
        expected = hmac.new(key, policy.encode(), hashlib.sha256).hexdigest()
        assert (
            sign_post_policy(vectors.REGION, vectors.DATE, "secret", policy)
            == expected
        )
