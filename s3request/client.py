# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request dispatch for S3-compatible object storage.

Each call runs a linear pipeline::

    resolve region -> build URL/request -> attach payload and headers
        -> sign -> trace -> send -> trace -> check status

Nothing is shared between calls except the client's immutable
configuration, so calls may run concurrently from several threads.
Nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from s3request import region as regions
from s3request.config import ClientConfig
from s3request.errors import (
    HttpError,
    S3RequestError,
    SigningFailure,
    TransportFailure,
)
from s3request.logging import SecretFilter
from s3request.models import (
    BytesBody,
    NoBody,
    ProgressCallback,
    Request,
    Response,
    StreamBody,
    StreamedResponse,
    TextBody,
    body_from,
)
from s3request.result import Result, capture
from s3request.signing import (
    SIGN_V4_ALGORITHM,
    UNSIGNED_PAYLOAD,
    authorization_header,
    get_credential,
    hash_payload,
    make_date_long,
    presign,
    sign_post_policy,
)
from s3request.trace import (
    LoggingTraceSink,
    RequestTrace,
    ResponseTrace,
    TraceSink,
    null_trace_sink,
)
from s3request.transport import HttpxTransport, Transport
from s3request.urls import Queries, build_url


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SigningPolicy:
    """How requests are signed, fixed for the lifetime of a client.

    Attributes:
        anonymous: No credentials; requests carry the ``x-amz-*``
            headers but no ``authorization``.
        sha256_payload: Hash in-memory payloads into
            ``x-amz-content-sha256``.  Only without TLS; over TLS the
            payload is sent as ``UNSIGNED-PAYLOAD``.
    """

    anonymous: bool
    sha256_payload: bool

    @classmethod
    def from_config(cls, config: ClientConfig) -> SigningPolicy:
        anonymous = not config.access_key and not config.secret_key
        return cls(
            anonymous=anonymous,
            sha256_payload=not anonymous and not config.use_ssl,
        )


class Client:
    """Signs and sends requests to an S3-compatible endpoint.

    Example:
        config = ClientConfig(
            endpoint="s3.amazonaws.com",
            access_key="AKIA...",
            secret_key="...",
            region="us-west-2",
        )
        with Client(config) as client:
            response = client.request(
                "GET", bucket="photos", object_name="2024/cat.jpg"
            )
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Transport | None = None,
        region_resolver: regions.RegionDiscovery | None = None,
        trace_sink: TraceSink | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration.
            transport: Sends requests.  Defaults to an ``HttpxTransport``
                owned (and closed) by this client.
            region_resolver: Bucket-region discovery, called with the
                bucket name when a call needs a region it was not given.
                Defaults to answering ``config.region`` (or
                ``us-east-1``).
            trace_sink: Receives request/response events.  Defaults to
                logging when ``config.enable_trace`` is set, else no-op.
            clock: Returns the current UTC time, for the signing date.
        """
        self.config = config
        self.credentials = config.credentials
        self.policy = SigningPolicy.from_config(config)

        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(
            timeout=config.timeout_seconds
        )
        self._discover = region_resolver or regions.StaticRegionResolver(
            config.region or regions.DEFAULT_REGION
        )
        if trace_sink is None:
            trace_sink = (
                LoggingTraceSink() if config.enable_trace else null_trace_sink
            )
        self._trace = trace_sink
        self._tracing = trace_sink is not null_trace_sink
        self._clock = clock

        SecretFilter.register_credentials(self.credentials)

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def request(
        self,
        method: str,
        *,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: Any = "",
        queries: Queries | None = None,
        headers: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Response:
        """Sign and send a request, reading the whole response.

        Args:
            method: HTTP method.
            bucket: Bucket name.
            object_name: Object key.
            region: Bucket region.  Discovered when a bucket is given
                without one, unless the endpoint names a region.
            resource: Sub-resource marker, e.g. ``location``.
            payload: Body: ``None``, ``str``, bytes, a binary file
                object, an iterable of bytes, or a body variant.
            queries: Extra query parameters.
            headers: Extra request headers.
            on_progress: Called with the running total of body bytes
                sent, after every chunk of at most 64 KiB.

        Returns:
            The response.

        Raises:
            UnsupportedBodyType: Payload of an unsupported type.
            RegionResolutionFailure: Region discovery failed.
            SigningFailure: The request could not be signed (not sent).
            TransportFailure: The transport failed (``TransportTimeout``
                on timeout).
            HttpError: Status code >= 400.
        """
        request = self._prepare(
            method,
            bucket=bucket,
            object_name=object_name,
            region=region,
            resource=resource,
            payload=payload,
            queries=queries,
            headers=headers,
            on_progress=on_progress,
        )
        response = self._send(request, stream=False)
        assert isinstance(response, Response)

        if self._tracing:
            self._trace(
                ResponseTrace(
                    response.status_code,
                    response.reason,
                    tuple(response.headers.multi_items()),
                    response.content.decode("utf-8", errors="replace"),
                )
            )

        if response.status_code >= 400:
            logger.debug(
                "%s %s failed: %d %s",
                method,
                request.url,
                response.status_code,
                response.reason,
            )
            raise HttpError(
                response.status_code, response.reason, response.content
            )
        return response

    def request_stream(
        self,
        method: str,
        *,
        bucket: str | None = None,
        object_name: str | None = None,
        region: str | None = None,
        resource: str | None = None,
        payload: Any = "",
        queries: Queries | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> StreamedResponse:
        """Sign and send a request, leaving the response body unread.

        The caller must close the returned response.  On status >= 400
        the response is closed and ``HttpError`` carries no body.

        Raises:
            Same as ``request``.
        """
        request = self._prepare(
            method,
            bucket=bucket,
            object_name=object_name,
            region=region,
            resource=resource,
            payload=payload,
            queries=queries,
            headers=headers,
            on_progress=None,
        )
        response = self._send(request, stream=True)
        assert isinstance(response, StreamedResponse)

        if self._tracing:
            self._trace(
                ResponseTrace(
                    response.status_code,
                    response.reason,
                    tuple(response.headers.multi_items()),
                    None,
                )
            )

        if response.status_code >= 400:
            response.close()
            raise HttpError(response.status_code, response.reason, None)
        return response

    def dispatch(
        self,
        method: str,
        **kwargs: Any,
    ) -> Result[Response, S3RequestError]:
        """Like ``request``, but return ``Ok(response)`` or ``Err(error)``.

        Only ``S3RequestError`` kinds are captured; anything else (a bug,
        ``KeyboardInterrupt``) propagates.
        """
        return capture(self.request, method, **kwargs)

    def dispatch_stream(
        self,
        method: str,
        **kwargs: Any,
    ) -> Result[StreamedResponse, S3RequestError]:
        """Like ``request_stream``, but return ``Ok``/``Err``."""
        return capture(self.request_stream, method, **kwargs)

    def dispatch_presigned_url(
        self,
        method: str,
        bucket: str,
        object_name: str | None = None,
        **kwargs: Any,
    ) -> Result[str, S3RequestError]:
        """Like ``presigned_url``, but return ``Ok(url)`` or ``Err(error)``."""
        return capture(
            self.presigned_url, method, bucket, object_name, **kwargs
        )

    def presigned_url(
        self,
        method: str,
        bucket: str,
        object_name: str | None = None,
        *,
        expires: int = 7 * 24 * 3600,
        region: str | None = None,
        resource: str | None = None,
        queries: Queries | None = None,
        request_date: datetime | None = None,
    ) -> str:
        """Build a presigned URL granting *method* on an object.

        Args:
            method: HTTP method the URL is valid for.
            bucket: Bucket name.
            object_name: Object key.
            expires: Lifetime in seconds, 1 to 604800.
            region: Bucket region (resolved like ``request``).
            resource: Sub-resource marker.
            queries: Extra query parameters (signed).
            request_date: Start of validity.  Defaults to now.

        Returns:
            The presigned URL.

        Raises:
            InvalidExpiry: If *expires* is out of range.
            RegionResolutionFailure: Region discovery failed.
        """
        retained, signing_region = self._resolve_region(bucket, region)
        url = build_url(
            self.config.endpoint,
            retained,
            bucket,
            object_name,
            resource,
            queries,
            self.config.use_ssl,
            self.config.port,
        )
        request = Request(method, url)
        request.headers["host"] = request.host
        return presign(
            self.credentials,
            request,
            signing_region,
            request_date or self._clock(),
            expires,
        )

    def presigned_post_fields(
        self,
        policy_base64: str,
        *,
        region: str | None = None,
        request_date: datetime | None = None,
    ) -> dict[str, str]:
        """Sign a browser POST upload policy.

        The policy document must declare the same ``x-amz-algorithm``,
        ``x-amz-credential`` and ``x-amz-date`` conditions as the
        returned fields.

        Args:
            policy_base64: Base64-encoded JSON policy document.
            region: Region for the credential scope.
            request_date: Signing date.  Defaults to now.

        Returns:
            Form fields to submit along with the file.
        """
        _, signing_region = self._resolve_region(None, region)
        date = request_date or self._clock()
        fields = {
            "policy": policy_base64,
            "x-amz-algorithm": SIGN_V4_ALGORITHM,
            "x-amz-credential": get_credential(
                self.credentials.access_key, date, signing_region
            ),
            "x-amz-date": make_date_long(date),
        }
        if self.credentials.session_token:
            fields["x-amz-security-token"] = self.credentials.session_token
        fields["x-amz-signature"] = sign_post_policy(
            signing_region, date, self.credentials.secret_key, policy_base64
        )
        return fields

    def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport and isinstance(self._transport, HttpxTransport):
            self._transport.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -----------------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------------

    def _resolve_region(
        self, bucket: str | None, region: str | None
    ) -> tuple[str | None, str]:
        """Return (region for the host, region for the signing scope)."""
        endpoint = self.config.endpoint
        retained = regions.resolve_region(
            endpoint, region, bucket, self._discover
        )
        signing_region = (
            retained
            or regions.endpoint_region(endpoint)
            or self.config.region
            or regions.DEFAULT_REGION
        )
        return retained, signing_region

    def _prepare(
        self,
        method: str,
        *,
        bucket: str | None,
        object_name: str | None,
        region: str | None,
        resource: str | None,
        payload: Any,
        queries: Queries | None,
        headers: Mapping[str, str] | None,
        on_progress: ProgressCallback | None,
    ) -> Request:
        """Build, sign and trace a request ready for the transport."""
        body = body_from(payload)
        retained, signing_region = self._resolve_region(bucket, region)

        url = build_url(
            self.config.endpoint,
            retained,
            bucket,
            object_name,
            resource,
            queries,
            self.config.use_ssl,
            self.config.port,
        )
        request = Request(method, url, body=body, on_progress=on_progress)
        date = self._clock()
        if self.policy.sha256_payload:
            content_sha256 = hash_payload(body)
        else:
            content_sha256 = UNSIGNED_PAYLOAD

        try:
            # httpx.Headers rejects values it cannot encode as ASCII.
            if headers:
                request.headers.update(headers)
            request.headers["host"] = request.host
            request.headers["user-agent"] = self.config.user_agent
            request.headers["x-amz-date"] = make_date_long(date)
            request.headers["x-amz-content-sha256"] = content_sha256
            if self.credentials.session_token:
                request.headers["x-amz-security-token"] = (
                    self.credentials.session_token
                )
            if not self.policy.anonymous:
                request.headers["authorization"] = authorization_header(
                    self.credentials, request, date, signing_region
                )
        except Exception as e:
            logger.error("Failed to sign %s %s: %s", method, url, e)
            raise SigningFailure(f"Failed to sign request: {e}") from e

        if self._tracing:
            self._trace(
                RequestTrace(
                    request.method,
                    request.url,
                    tuple(request.headers.multi_items()),
                    _describe_body(request),
                )
            )
        return request

    def _send(
        self, request: Request, *, stream: bool
    ) -> Response | StreamedResponse:
        """Send through the transport, wrapping foreign errors."""
        try:
            return self._transport.send(request, stream=stream)
        except S3RequestError:
            raise
        except Exception as e:
            logger.error(
                "Transport failed for %s %s: %s", request.method, request.url, e
            )
            raise TransportFailure(f"Transport failed: {e}") from e


def _describe_body(request: Request) -> str:
    match request.body:
        case NoBody():
            return "<no body>"
        case TextBody(text=text):
            return text
        case BytesBody(data=data):
            return f"<{len(data)} bytes>"
        case StreamBody(length=length):
            if length is None:
                return "<stream>"
            return f"<stream of {length} bytes>"
    return "<unknown body>"
