# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Error taxonomy for request signing and dispatch.

Every failure surfaced by the client is an ``S3RequestError`` subclass,
so callers can catch the base class or match on the concrete kind.
"""

from __future__ import annotations


class S3RequestError(Exception):
    """Base exception for all request signing and dispatch failures."""


class UnsupportedBodyType(S3RequestError, TypeError):
    """Request body is not one of the supported representations."""


class RegionResolutionFailure(S3RequestError):
    """Bucket region discovery collaborator failed."""

    def __init__(self, bucket: str, message: str) -> None:
        super().__init__(
            f"Failed to resolve region of bucket {bucket!r}: {message}"
        )
        self.bucket = bucket


class SigningFailure(S3RequestError):
    """Signature computation failed; the request was not sent."""


class InvalidExpiry(S3RequestError, ValueError):
    """Presign expiry outside the allowed range."""

    def __init__(self, expires: int, message: str) -> None:
        super().__init__(message)
        self.expires = expires


class HttpError(S3RequestError):
    """Server answered with a status code >= 400.

    Attributes:
        status: HTTP status code.
        reason: Reason phrase.
        body: Response body, or ``None`` for streamed responses.
    """

    def __init__(self, status: int, reason: str, body: bytes | None) -> None:
        super().__init__(f"HTTP error: {status} {reason}")
        self.status = status
        self.reason = reason
        self.body = body

    @property
    def text(self) -> str | None:
        """Response body decoded as UTF-8, if materialized."""
        if self.body is None:
            return None
        return self.body.decode("utf-8", errors="replace")


class TransportFailure(S3RequestError):
    """Lower-level transport error (connection, protocol, cancellation)."""


class TransportTimeout(TransportFailure):
    """Transport gave up waiting (connect, read, write or pool timeout)."""
