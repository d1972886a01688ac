# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request/response trace hook.

The client reports every request it sends and every response it
receives to a trace sink.  The default sink does nothing;
``LoggingTraceSink`` writes the events to a logger.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestTrace:
    """A request about to be sent.

    Attributes:
        method: HTTP method.
        url: Full request URL.
        headers: Header (name, value) pairs as sent.
        body: Short description of the body (never the bytes).
    """

    method: str
    url: str
    headers: tuple[tuple[str, str], ...]
    body: str


@dataclass(frozen=True)
class ResponseTrace:
    """A response as received.

    ``body`` is the decoded body for materialized responses and
    ``None`` for streamed ones.
    """

    status_code: int
    reason: str
    headers: tuple[tuple[str, str], ...]
    body: str | None


TraceEvent = RequestTrace | ResponseTrace
TraceSink = Callable[[TraceEvent], None]


def null_trace_sink(event: TraceEvent) -> None:
    """Discard the event."""


class LoggingTraceSink:
    """Trace sink writing events to a logger at DEBUG level.

    The ``authorization`` header value is masked; other secrets are left
    to the ``SecretFilter`` installed by ``configure_logging``.
    """

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    def __call__(self, event: TraceEvent) -> None:
        match event:
            case RequestTrace():
                self._logger.debug(
                    "REQUEST: %s %s\n%s\n%s",
                    event.method,
                    event.url,
                    _format_headers(event.headers),
                    event.body,
                )
            case ResponseTrace():
                self._logger.debug(
                    "RESPONSE: %d %s\n%s\n%s",
                    event.status_code,
                    event.reason,
                    _format_headers(event.headers),
                    "STREAMED BODY" if event.body is None else event.body,
                )


def _format_headers(headers: tuple[tuple[str, str], ...]) -> str:
    lines = []
    for name, value in headers:
        if name.lower() == "authorization":
            value = value.split(" ", 1)[0] + " [REDACTED]"
        lines.append(f"{name}: {value}")
    return "\n".join(lines)
