# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 for S3.

Provides pure functions for:

- Canonical request construction
- String-to-sign and signing-key derivation
- Authorization header signing
- Presigned URLs (query-string signing)
- POST policy signing for browser form uploads

No boto3/botocore dependency; uses only the stdlib.  Nothing is cached:
the signing key and canonical request are derived fresh on every call.
"""

from __future__ import annotations

import hashlib
import hmac
import urllib.parse
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from s3request.errors import InvalidExpiry
from s3request.models import Body, BytesBody, NoBody, Request, TextBody


SIGN_V4_ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

#: Longest presigned URL lifetime accepted by S3 (7 days).
MAX_PRESIGN_EXPIRY = 604800

_SHA256_EMPTY = hashlib.sha256(b"").hexdigest()

_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

# Headers that proxies and clients are free to rewrite
_IGNORED_HEADERS = frozenset(
    {"authorization", "content-length", "content-type", "user-agent"}
)


@dataclass(frozen=True)
class Credentials:
    """S3 access credentials.

    Attributes:
        access_key: Access key ID.
        secret_key: Secret access key.
        session_token: STS session token for temporary credentials.
    """

    access_key: str
    secret_key: str
    session_token: str | None = None

    @property
    def anonymous(self) -> bool:
        """True when no access key and no secret key are set."""
        return not self.access_key and not self.secret_key

    def __repr__(self) -> str:
        return f"Credentials(access_key={self.access_key!r}, secret_key='***')"


# ---------------------------------------------------------------------------
# Dates and digests
# ---------------------------------------------------------------------------


def _to_utc(date: datetime) -> datetime:
    if date.tzinfo is None:
        return date.replace(tzinfo=UTC)
    return date.astimezone(UTC)


def make_date_long(date: datetime) -> str:
    """Format as ``yyyyMMdd'T'HHmmss'Z'`` in UTC (naive means UTC)."""
    return _to_utc(date).strftime("%Y%m%dT%H%M%SZ")


def make_date_short(date: datetime) -> str:
    """Format as ``yyyyMMdd`` in UTC (naive means UTC)."""
    return _to_utc(date).strftime("%Y%m%d")


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hash_payload(body: Body) -> str:
    """Hex SHA-256 of an in-memory body.

    Stream bodies cannot be hashed without consuming them, so they are
    sent as ``UNSIGNED-PAYLOAD``.
    """
    match body:
        case NoBody():
            return _SHA256_EMPTY
        case TextBody(text=text):
            return sha256_hex(text)
        case BytesBody(data=data):
            return sha256_hex(data)
        case _:
            return UNSIGNED_PAYLOAD


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    """HMAC-SHA256 helper."""
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def hmac_sha256_hex(key: bytes, msg: str) -> str:
    """Hex-encoded HMAC-SHA256 of *msg* under *key*."""
    return _hmac_sha256(key, msg).hex()


# ---------------------------------------------------------------------------
# URI encoding (AWS-specific RFC 3986 subset)
# ---------------------------------------------------------------------------


def uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """URI-encode a value using AWS's specific rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - All other characters are percent-encoded as %XX (uppercase hex)
      over their UTF-8 bytes
    - Forward slashes (/) are optionally preserved

    Args:
        value: String to encode.
        encode_slash: If True, encode '/'; if False, preserve '/'.

    Returns:
        URI-encoded string.
    """
    result: list[str] = []
    for ch in value:
        if ch in _AWS_UNRESERVED:
            result.append(ch)
        elif ch == "/" and not encode_slash:
            result.append("/")
        else:
            result.extend(f"%{b:02X}" for b in ch.encode("utf-8"))
    return "".join(result)


# ---------------------------------------------------------------------------
# Canonical request construction
# ---------------------------------------------------------------------------


def get_signed_headers(header_names: Iterable[str]) -> list[str]:
    """Select and order the headers covered by the signature.

    Lower-cases every name, drops ``authorization``, ``content-length``,
    ``content-type`` and ``user-agent``, and sorts the rest.
    """
    return sorted(
        {
            name.lower()
            for name in header_names
            if name.lower() not in _IGNORED_HEADERS
        }
    )


def canonical_uri(path: str) -> str:
    """Build the canonical URI from a request path.

    S3 uses single encoding: any existing percent-encoding is decoded
    first, then every segment is encoded once.  Slashes, double slashes
    and ``.``/``..`` segments are preserved as-is.
    """
    if not path:
        return "/"
    return uri_encode(urllib.parse.unquote(path), encode_slash=False)


def canonical_query_string(query: str) -> str:
    """Build the canonical query string.

    Args:
        query: Raw query string (without leading ?).

    Returns:
        Parameters encoded with ``%20`` for spaces and sorted by name,
        then value.
    """
    if not query:
        return ""

    params = urllib.parse.parse_qsl(query, keep_blank_values=True)
    encoded = [(uri_encode(k), uri_encode(v)) for k, v in params]
    encoded.sort()
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers_string(
    headers: Iterable[tuple[str, str]], signed_headers: list[str]
) -> str:
    """Build the canonical headers block.

    Args:
        headers: Request header items (name, value).
        signed_headers: Lower-cased signed header names, sorted.

    Returns:
        One ``name:value`` line per signed header, each newline-terminated.
    """
    lower_headers: dict[str, list[str]] = {}
    for name, value in headers:
        lower_headers.setdefault(name.lower(), []).append(value)

    lines: list[str] = []
    for name in signed_headers:
        values = lower_headers.get(name, [""])
        # Trim leading/trailing whitespace, collapse sequential spaces
        trimmed = ",".join(" ".join(value.split()) for value in values)
        lines.append(f"{name}:{trimmed}\n")
    return "".join(lines)


def build_canonical_request(
    request: Request, signed_headers: list[str], hashed_payload: str
) -> str:
    """Build the canonical request string.

    Format::

        HTTPMethod
        CanonicalURI
        CanonicalQueryString
        CanonicalHeaders
        SignedHeaders
        HashedPayload
    """
    return "\n".join(
        [
            request.method.upper(),
            canonical_uri(request.path),
            canonical_query_string(request.query),
            canonical_headers_string(
                request.headers.multi_items(), signed_headers
            ),
            ";".join(signed_headers),
            hashed_payload,
        ]
    )


# ---------------------------------------------------------------------------
# SigV4 signing
# ---------------------------------------------------------------------------


def get_scope(date: datetime, region: str) -> str:
    """Credential scope: ``yyyyMMdd/<region>/s3/aws4_request``."""
    return f"{make_date_short(date)}/{region}/{SERVICE}/aws4_request"


def get_credential(access_key: str, date: datetime, region: str) -> str:
    return f"{access_key}/{get_scope(date, region)}"


def build_string_to_sign(
    canonical_request: str, date: datetime, region: str
) -> str:
    """Build the SigV4 string to sign."""
    return "\n".join(
        [
            SIGN_V4_ALGORITHM,
            make_date_long(date),
            get_scope(date, region),
            sha256_hex(canonical_request),
        ]
    )


def derive_signing_key(date: datetime, region: str, secret_key: str) -> bytes:
    """Derive the SigV4 signing key.

    kSecret -> kDate -> kRegion -> kService -> kSigning, each step an
    HMAC-SHA256 keyed by the previous result.
    """
    k_date = _hmac_sha256(
        ("AWS4" + secret_key).encode("utf-8"), make_date_short(date)
    )
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, SERVICE)
    return _hmac_sha256(k_service, "aws4_request")


def authorization_header(
    credentials: Credentials,
    request: Request,
    date: datetime,
    region: str,
) -> str:
    """Compute the ``Authorization`` header value for *request*.

    The payload hash is read from the ``x-amz-content-sha256`` header
    (``UNSIGNED-PAYLOAD`` when absent).

    Args:
        credentials: Signing credentials.
        request: Request with all headers to be signed already set.
        date: Request timestamp; must match ``x-amz-date``.
        region: Region for the credential scope.

    Returns:
        ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...``
    """
    signed_headers = get_signed_headers(request.headers.keys())
    hashed_payload = request.headers.get(
        "x-amz-content-sha256", UNSIGNED_PAYLOAD
    )
    canonical_request = build_canonical_request(
        request, signed_headers, hashed_payload
    )
    string_to_sign = build_string_to_sign(canonical_request, date, region)
    signing_key = derive_signing_key(date, region, credentials.secret_key)
    signature = hmac_sha256_hex(signing_key, string_to_sign)
    return (
        f"{SIGN_V4_ALGORITHM} "
        f"Credential={get_credential(credentials.access_key, date, region)}, "
        f"SignedHeaders={';'.join(signed_headers)}, "
        f"Signature={signature}"
    )


# ---------------------------------------------------------------------------
# Presigned URLs and POST policies
# ---------------------------------------------------------------------------


def presign(
    credentials: Credentials,
    request: Request,
    region: str,
    date: datetime,
    expires: int,
) -> str:
    """Build a presigned URL for *request*.

    The ``X-Amz-*`` authentication parameters are added to the request
    query before the canonical request is computed (with an unsigned
    payload); ``X-Amz-Signature`` is appended last.

    Args:
        credentials: Signing credentials.
        request: Request to presign; its headers (usually just ``host``)
            become the signed headers.
        region: Region for the credential scope.
        date: Signing timestamp; the URL is valid from then on.
        expires: Lifetime in seconds, 1 to 604800.

    Returns:
        The presigned URL.

    Raises:
        InvalidExpiry: If *expires* is out of range.
    """
    if expires < 1:
        raise InvalidExpiry(
            expires, "expires param cannot be less than 1 second"
        )
    if expires > MAX_PRESIGN_EXPIRY:
        raise InvalidExpiry(
            expires, "expires param cannot be greater than 7 days"
        )

    signed_headers = get_signed_headers(request.headers.keys())
    params = urllib.parse.parse_qsl(request.query, keep_blank_values=True)
    params += [
        ("X-Amz-Algorithm", SIGN_V4_ALGORITHM),
        (
            "X-Amz-Credential",
            get_credential(credentials.access_key, date, region),
        ),
        ("X-Amz-Date", make_date_long(date)),
        ("X-Amz-Expires", str(expires)),
        ("X-Amz-SignedHeaders", ";".join(signed_headers)),
    ]
    if credentials.session_token:
        params.append(("X-Amz-Security-Token", credentials.session_token))

    query = "&".join(
        f"{uri_encode(k)}={uri_encode(v)}" if v else uri_encode(k)
        for k, v in params
    )
    url = urllib.parse.urlsplit(request.url)._replace(query=query)
    presigned = request.replace(url=urllib.parse.urlunsplit(url))

    canonical_request = build_canonical_request(
        presigned, signed_headers, UNSIGNED_PAYLOAD
    )
    string_to_sign = build_string_to_sign(canonical_request, date, region)
    signing_key = derive_signing_key(date, region, credentials.secret_key)
    signature = hmac_sha256_hex(signing_key, string_to_sign)
    return f"{presigned.url}&X-Amz-Signature={signature}"


def sign_post_policy(
    region: str, date: datetime, secret_key: str, policy_base64: str
) -> str:
    """Sign a base64-encoded POST policy document.

    Returns:
        Hex-encoded signature for the ``x-amz-signature`` form field.
    """
    signing_key = derive_signing_key(date, region, secret_key)
    return hmac_sha256_hex(signing_key, policy_base64)
