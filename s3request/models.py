# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request and response values with lazy body materialization.

A request body is one of four variants:

- ``NoBody``: nothing is sent
- ``TextBody``: a string, UTF-8 encoded once at finalize time
- ``BytesBody``: a fixed byte buffer
- ``StreamBody``: a lazily produced iterable of byte chunks

``finalize()`` turns the body into the byte iterator handed to the
transport.  Headers derived from the body (``content-length``) are set
eagerly; the chunks themselves are only produced as the transport pulls
them, so a slow consumer suspends the producer instead of buffering.

When a progress callback is attached, chunks are capped at
``MAX_CHUNK_SIZE`` and the callback receives the running byte total
after every chunk.
"""

from __future__ import annotations

import dataclasses
import urllib.parse
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from s3request.errors import UnsupportedBodyType


#: Largest chunk emitted while progress is being reported (64 KiB).
MAX_CHUNK_SIZE = 1 << 16

ProgressCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Body variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NoBody:
    """Absent body."""


@dataclass(frozen=True, slots=True)
class TextBody:
    """In-memory text, sent UTF-8 encoded."""

    text: str


@dataclass(frozen=True, slots=True)
class BytesBody:
    """In-memory byte buffer."""

    data: bytes


@dataclass(frozen=True, slots=True)
class StreamBody:
    """Lazy byte stream.

    Attributes:
        chunks: Iterable producing the body bytes.  Iterated once.
        length: Total length, if known.  Sent as ``content-length`` so
            the transport does not fall back to chunked encoding.
    """

    chunks: Iterable[bytes]
    length: int | None = None


Body = NoBody | TextBody | BytesBody | StreamBody


def _iter_file(fileobj: Any) -> Iterator[bytes]:
    """Read a binary file object in ``MAX_CHUNK_SIZE`` pieces."""
    while True:
        chunk = fileobj.read(MAX_CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def body_from(payload: object) -> Body:
    """Convert a caller-supplied payload into a body variant.

    Args:
        payload: ``None``, ``str``, a bytes-like object, a binary file
            object, an iterable of ``bytes`` chunks, or a body variant.

    Returns:
        The matching body variant.

    Raises:
        UnsupportedBodyType: For any other value.
    """
    match payload:
        case NoBody() | TextBody() | BytesBody() | StreamBody():
            return payload
        case None:
            return NoBody()
        case str():
            return TextBody(payload)
        case bytes() | bytearray() | memoryview():
            return BytesBody(bytes(payload))
        case Mapping():
            pass
        case _ if hasattr(payload, "read"):
            return StreamBody(_iter_file(payload))
        case Iterable():
            return StreamBody(payload)
    raise UnsupportedBodyType(
        f"Unsupported body type: {type(payload).__name__}. Supported "
        f"types are str, bytes, binary file objects and iterables of bytes."
    )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass
class Request:
    """An HTTP request about to be signed and sent.

    Header lookup is case-insensitive; names keep the case they were
    set with.
    """

    method: str
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Body = field(default_factory=NoBody)
    on_progress: ProgressCallback | None = None
    finalized: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)

    @property
    def host(self) -> str:
        """Network location of the URL (host, plus port when present)."""
        return urllib.parse.urlsplit(self.url).netloc

    @property
    def path(self) -> str:
        return urllib.parse.urlsplit(self.url).path or "/"

    @property
    def query(self) -> str:
        return urllib.parse.urlsplit(self.url).query

    def replace(self, **changes: Any) -> Request:
        """Return a copy with *changes* applied and headers copied."""
        changes.setdefault("headers", httpx.Headers(self.headers))
        return dataclasses.replace(self, **changes)


def _limit_chunks(chunks: Iterable[bytes], max_size: int) -> Iterator[bytes]:
    """Split chunks so none exceeds *max_size*; drop empty chunks."""
    for chunk in chunks:
        for start in range(0, len(chunk), max_size):
            yield chunk[start : start + max_size]


def _report_progress(
    chunks: Iterable[bytes], on_progress: ProgressCallback
) -> Iterator[bytes]:
    """Pass chunks through, reporting the running total after each."""
    total = 0
    for chunk in chunks:
        total += len(chunk)
        yield chunk
        on_progress(total)


def finalize(request: Request) -> Iterator[bytes]:
    """Turn the request body into the byte stream to transmit.

    Sets ``content-length`` for text and bytes bodies (and for stream
    bodies with a declared length) before returning.  The body can be
    finalized only once.

    Args:
        request: Request whose body to materialize.

    Returns:
        Iterator over the body bytes.

    Raises:
        UnsupportedBodyType: If the body is not a known variant.
        RuntimeError: If the request was already finalized.
    """
    if request.finalized:
        raise RuntimeError("Request body has already been finalized")

    stream: Iterator[bytes]
    match request.body:
        case NoBody():
            stream = iter(())
        case TextBody(text=text):
            data = text.encode("utf-8")
            request.headers["content-length"] = str(len(data))
            stream = iter((data,) if data else ())
        case BytesBody(data=data):
            request.headers["content-length"] = str(len(data))
            stream = iter((data,) if data else ())
        case StreamBody(chunks=chunks, length=length):
            if length is not None:
                request.headers["content-length"] = str(length)
            stream = iter(chunks)
        case other:
            raise UnsupportedBodyType(
                f"Unsupported body type: {type(other).__name__}"
            )
    request.finalized = True

    if request.on_progress is None:
        return stream
    return _report_progress(
        _limit_chunks(stream, MAX_CHUNK_SIZE), request.on_progress
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Response:
    """Response with the body fully read."""

    status_code: int
    reason: str
    headers: httpx.Headers
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class StreamedResponse:
    """Response whose body has not been read yet.

    The caller owns the underlying connection and must ``close()`` the
    response (or use it as a context manager) when done.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        headers: httpx.Headers,
        chunks: Iterator[bytes],
        close: Callable[[], None],
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.headers = headers
        self._chunks = chunks
        self._close = close
        self._closed = False

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the body chunks as they arrive."""
        yield from self._chunks

    def read(self) -> bytes:
        """Read the remaining body into memory and close the response."""
        try:
            return b"".join(self._chunks)
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._close()

    def __enter__(self) -> StreamedResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
