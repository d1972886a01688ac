# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Success/failure result variants returned by ``Client.dispatch``.

Usage::

    match client.dispatch("GET", bucket="photos", object_name="a.jpg"):
        case Ok(response):
            data = response.content
        case Err(HttpError(status=404)):
            data = None
        case Err(error):
            raise error
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Literal, NoReturn, TypeVar

from s3request.errors import S3RequestError


T = TypeVar("T")
E = TypeVar("E", bound=BaseException)
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying one of the ``S3RequestError`` kinds."""

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> NoReturn:
        """Re-raise the carried error."""
        raise self.error

    def unwrap_or(self, default: U) -> U:
        return default

    def map(self, fn: Callable[[object], object]) -> Err[E]:
        return self


Result = Ok[T] | Err[E]


def capture(
    fn: Callable[..., T], *args: object, **kwargs: object
) -> Result[T, S3RequestError]:
    """Call *fn*, returning ``Ok(value)`` or ``Err(error)``.

    Only ``S3RequestError`` kinds are captured; anything else (a bug,
    ``KeyboardInterrupt``) propagates.
    """
    try:
        return Ok(fn(*args, **kwargs))
    except S3RequestError as e:
        return Err(e)
