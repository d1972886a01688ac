# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration with credential redaction.

Two kinds of sensitive values are kept out of log output:

- Registered secrets (secret keys, session tokens).  ``Client``
  registers its credentials on construction.
- SigV4 signatures and query-string security tokens, wherever they
  appear.  A presigned URL is a bearer credential until it expires.

Usage:
    # In applications
    from s3request.logging import configure_logging
    configure_logging(level=logging.DEBUG)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.debug("Signing request for %s", host)
"""

import logging
import re
from typing import ClassVar

from s3request.signing import Credentials


REDACTED = "[REDACTED]"

# Signature=<hex> (authorization header) and X-Amz-Signature=<hex> /
# X-Amz-Security-Token=<value> (presigned URLs)
_SIGV4_PATTERN = re.compile(
    r"(?P<key>(?:X-Amz-)?Signature=|X-Amz-Security-Token=)"
    r"(?P<value>[^&\s,\"']+)"
)


class SecretFilter(logging.Filter):
    """Logging filter that redacts credentials from log records.

    Example:
        SecretFilter.register_secret("wJalrXUtnFEMI/K7MDENG")
        handler.addFilter(SecretFilter())
        logger.info("Using key: wJalrXUtnFEMI/K7MDENG")
        # Output: "Using key: [REDACTED]"
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact the message and string arguments; never suppresses."""
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Return *text* with secrets and signatures replaced."""
        if cls._pattern is not None:
            text = cls._pattern.sub(REDACTED, text)
        return _SIGV4_PATTERN.sub(rf"\g<key>{REDACTED}", text)

    @classmethod
    def register_secret(cls, secret: str | None) -> None:
        """Register a secret to be redacted from all log output.

        Args:
            secret: The secret string to redact.  Empty values and
                ``None`` are ignored.
        """
        if secret:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def register_credentials(cls, credentials: Credentials) -> None:
        """Register the secret parts of *credentials*.

        The access key ID is not secret and stays visible, since it
        identifies which credentials a request was signed with.
        """
        cls.register_secret(credentials.secret_key)
        cls.register_secret(credentials.session_token)

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        # Longest first so a secret containing another is fully redacted
        escaped = [
            re.escape(s) for s in sorted(cls._secrets, key=len, reverse=True)
        ]
        cls._pattern = re.compile("|".join(escaped)) if escaped else None


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
) -> None:
    """Configure the root logger.

    Replaces any existing root handlers with a single stream handler.

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string. If None, uses default format.
        add_secret_filter: Whether to add the SecretFilter to redact secrets.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            format_string
            or "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )
    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)
    root_logger.addHandler(handler)
