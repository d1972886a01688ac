# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures."""

from collections.abc import Iterator

import pytest

from s3request.dotenv_loader import reset_dotenv_state
from s3request.logging import SecretFilter


@pytest.fixture(autouse=True)
def _isolate_global_state() -> Iterator[None]:
    """Forget registered secrets and loaded .env state between tests."""
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()
