"""
Tests for the client session wiring in org.matrix.uvs.app.server

The connector tests use a real aiohttp ClientSession against a local test server, with
only the DNS answers patched, so they show whether a connection is actually made.
"""

from typing import List
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from aiohttp import test_utils, web
from aiohttp.resolver import AsyncResolver

from org.matrix.uvs.app.server import create_connector
from org.matrix.uvs.resolve.server import BlacklistingResolver
from tests.helpers import address_info, make_settings


def make_target() -> tuple:
    """A local app that records every request it receives."""
    hits: List[web.Request] = []

    async def handler(request: web.Request) -> web.Response:
        hits.append(request)
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_get("/.well-known/matrix/server", handler)
    return app, hits


class TestCreateConnector:
    @pytest.mark.asyncio
    async def test_single_mode_uses_default_connector(self):
        assert create_connector(make_settings()) is None

    @pytest.mark.asyncio
    async def test_blacklist_disabled_uses_default_connector(self):
        settings = make_settings(
            openid_verify_any_homeserver=True, disable_ip_blacklist=True
        )

        assert create_connector(settings) is None

    @pytest.mark.asyncio
    async def test_multi_mode_uses_blacklisting_resolver(self):
        settings = make_settings(
            homeserver_url="http://synapse.internal:8008",
            openid_verify_any_homeserver=True,
            request_timeout=4.0,
        )

        connector = create_connector(settings)

        assert isinstance(connector, aiohttp.TCPConnector)
        assert isinstance(connector._resolver, BlacklistingResolver)
        assert connector._resolver.allowed_hosts == frozenset(["synapse.internal"])
        await connector.close()


class TestBlacklistingSession:
    @pytest.mark.asyncio
    async def test_private_host_is_never_contacted(self):
        """A hostname that resolves to a private address is refused before connecting."""
        app, hits = make_target()
        settings = make_settings(homeserver_url=None, openid_verify_any_homeserver=True)

        async with test_utils.TestServer(app, host="127.0.0.1") as server:
            with patch.object(
                AsyncResolver,
                "resolve",
                AsyncMock(return_value=[address_info("127.0.0.1", server.port)]),
            ):
                async with aiohttp.ClientSession(
                    connector=create_connector(settings)
                ) as session:
                    url = f"http://rebind.example:{server.port}/.well-known/matrix/server"
                    with pytest.raises(aiohttp.ClientConnectorError):
                        await session.get(url)

        assert hits == []

    @pytest.mark.asyncio
    async def test_configured_homeserver_is_reachable(self):
        app, hits = make_target()

        async with test_utils.TestServer(app, host="127.0.0.1") as server:
            settings = make_settings(
                homeserver_url=f"http://synapse.internal:{server.port}",
                openid_verify_any_homeserver=True,
            )
            with patch.object(
                AsyncResolver,
                "resolve",
                AsyncMock(return_value=[address_info("127.0.0.1", server.port)]),
            ):
                async with aiohttp.ClientSession(
                    connector=create_connector(settings)
                ) as session:
                    url = f"{settings.homeserver_url}/.well-known/matrix/server"
                    async with session.get(url) as resp:
                        assert resp.status == 200

        assert len(hits) == 1
