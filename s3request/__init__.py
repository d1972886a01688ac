# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request signing and dispatch for S3-compatible object storage.

Provides:
- AWS Signature Version 4 signing and presigning (signing)
- Request/response values with lazy bodies (models)
- Path-style URL construction and region resolution (urls, region)
- The dispatching client (Client) over an httpx transport
"""

from s3request.client import Client, SigningPolicy
from s3request.config import ClientConfig, ConfigError
from s3request.errors import (
    HttpError,
    InvalidExpiry,
    RegionResolutionFailure,
    S3RequestError,
    SigningFailure,
    TransportFailure,
    TransportTimeout,
    UnsupportedBodyType,
)
from s3request.models import (
    BytesBody,
    NoBody,
    Request,
    Response,
    StreamBody,
    StreamedResponse,
    TextBody,
)
from s3request.result import Err, Ok, Result, capture
from s3request.signing import Credentials
from s3request.transport import HttpxTransport, Transport


__version__ = "0.1.0"

__all__ = [
    "BytesBody",
    "Client",
    "ClientConfig",
    "ConfigError",
    "Credentials",
    "Err",
    "HttpError",
    "HttpxTransport",
    "InvalidExpiry",
    "NoBody",
    "Ok",
    "RegionResolutionFailure",
    "Request",
    "Response",
    "Result",
    "S3RequestError",
    "SigningFailure",
    "SigningPolicy",
    "StreamBody",
    "StreamedResponse",
    "TextBody",
    "Transport",
    "TransportFailure",
    "TransportTimeout",
    "UnsupportedBodyType",
    "capture",
]
