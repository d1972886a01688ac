# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Idempotent .env loading for client configuration.

Environment variables are read from two locations (in order):

1. ``~/.config/s3request/.env`` (XDG config directory)
2. ``.env`` in the current working directory

Variables set by the first file are **not** overwritten by the second
(``python-dotenv`` respects existing env vars by default).
"""

import logging
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

_dotenv_loaded = False


def load_dotenv_once() -> None:
    """Load .env files once, if not already loaded."""
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    from s3request.config import get_dotenv_path

    for env_path in (get_dotenv_path(), Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded .env from %s", env_path)

    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the dotenv loaded state. For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False
