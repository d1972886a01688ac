# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Transport collaborator: sends a finalized request, returns a response.

Connection pooling, TLS and timeouts are handled by ``httpx``.  Every
``httpx`` failure is mapped onto the client's error taxonomy, with
timeouts kept distinct from other transport failures.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Literal, Protocol, overload

import httpx

from s3request.errors import TransportFailure, TransportTimeout
from s3request.models import (
    NoBody,
    Request,
    Response,
    StreamedResponse,
    finalize,
)


logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 60.0


class Transport(Protocol):
    """Anything that can send a ``Request``."""

    def send(
        self, request: Request, *, stream: bool = False
    ) -> Response | StreamedResponse: ...


class HttpxTransport:
    """Transport backed by an ``httpx.Client``.

    The request body is handed to httpx as the finalized byte iterator,
    so chunks are produced only as httpx writes them to the socket.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to send with.  When omitted, one is created
                and owned (closed by ``close()``) by this transport.
            timeout: Timeout in seconds for a created client.
        """
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @overload
    def send(
        self, request: Request, *, stream: Literal[False] = ...
    ) -> Response: ...

    @overload
    def send(
        self, request: Request, *, stream: Literal[True]
    ) -> StreamedResponse: ...

    def send(
        self, request: Request, *, stream: bool = False
    ) -> Response | StreamedResponse:
        """Send *request*.

        Args:
            request: Signed request; its body is finalized here.
            stream: Leave the response body unread.

        Returns:
            ``Response`` with the body read, or ``StreamedResponse``.

        Raises:
            TransportTimeout: On connect/read/write/pool timeout.
            TransportFailure: On any other transport error.
        """
        content = None
        if not isinstance(request.body, NoBody):
            content = finalize(request)
        http_request = self._client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=content,
        )

        try:
            http_response = self._client.send(http_request, stream=stream)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", request.method, request.host)
            raise TransportTimeout(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(
                "%s %s failed: %s", request.method, request.host, e
            )
            raise TransportFailure(f"Failed to send request: {e}") from e

        if stream:
            return StreamedResponse(
                http_response.status_code,
                http_response.reason_phrase,
                http_response.headers,
                _guarded(http_response.iter_bytes()),
                http_response.close,
            )

        return Response(
            http_response.status_code,
            http_response.reason_phrase,
            http_response.headers,
            http_response.content,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _guarded(chunks: Iterator[bytes]) -> Iterator[bytes]:
    """Re-raise httpx errors met while streaming as transport errors."""
    try:
        yield from chunks
    except httpx.TimeoutException as e:
        raise TransportTimeout(f"Response body timed out: {e}") from e
    except httpx.HTTPError as e:
        raise TransportFailure(f"Failed to read response body: {e}") from e
