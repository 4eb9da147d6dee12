# tests/conftest.py

"""Shared pytest fixtures for all sweep tests."""

from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[AsyncMock, None, None]:
    """Patch asyncio.sleep globally so throttles and backoffs run instantly."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleeper:
        yield sleeper
