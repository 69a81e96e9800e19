"""
Shared test configuration and fixtures for UVS tests.

No test touches the network: outbound HTTP goes through mocked aiohttp sessions and
DNS lookups through a patched resolver.
"""

import os
from unittest.mock import AsyncMock

import pytest
from aiohttp import ClientSession

from org.matrix.uvs.app.config import Settings
from tests.helpers import make_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep UVS_* variables from the host environment out of Settings."""
    for key in list(os.environ):
        if key.startswith("UVS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def mock_session() -> AsyncMock:
    """Mocked aiohttp ClientSession. Configure responses via get.return_value.__aenter__."""
    return AsyncMock(spec=ClientSession)
