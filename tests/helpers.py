"""
Common testing utilities for UVS tests.

Provides settings factories and mocked aiohttp responses shared by the test modules.
"""

import socket
from typing import Any, Optional
from unittest.mock import AsyncMock

from aiohttp import ClientResponse

from org.matrix.uvs.app.config import Settings


HOMESERVER_URL = "http://127.0.0.1"
USER_ID = "@user:synapse.local"
ROOM_ID = "!barfoo:synapse.local"


def make_settings(**kwargs: Any) -> Settings:
    """Build Settings for the default single-homeserver setup, with overrides."""
    values: dict = {"homeserver_url": HOMESERVER_URL}
    values.update(kwargs)
    return Settings(**values)


def make_response(status: int = 200, body: Optional[Any] = None) -> AsyncMock:
    """Create a mocked aiohttp response with the given status and JSON body."""
    response = AsyncMock(spec=ClientResponse)
    response.status = status
    response.json.return_value = body
    return response


def address_info(host: str, port: int = 0) -> dict:
    """An entry as returned by aiohttp's resolvers."""
    return {
        "hostname": host,
        "host": host,
        "port": port,
        "family": socket.AF_INET6 if ":" in host else socket.AF_INET,
        "proto": 0,
        "flags": socket.AI_NUMERICHOST,
    }
