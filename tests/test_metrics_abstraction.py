"""
Unit Tests for Metrics Abstraction Layer

Test Coverage:
- MetricsClient interface implementations
- Backend selection via factory function
- Delegation to the underlying TelegrafStatsdClient
"""

import pytest
from unittest.mock import Mock, patch, AsyncMock

from org.matrix.uvs.app.metrics import (
    MetricsClient,
    TelegrafCompatibilityClient,
    NoOpMetricsClient,
    create_metrics_client,
)


class TestMetricsClientInterface:
    """Test the abstract MetricsClient interface."""

    def test_interface_is_abstract(self):
        """MetricsClient should be abstract and not instantiable."""
        with pytest.raises(TypeError):
            MetricsClient()


class TestNoOpMetricsClient:
    """Test the NoOpMetricsClient implementation."""

    @pytest.fixture
    def noop_client(self):
        return NoOpMetricsClient()

    def test_noop_increment(self, noop_client):
        """NoOp increment should not raise exceptions."""
        noop_client.increment("test.counter", 1, {"tag": "value"})
        noop_client.increment("test.counter")

    def test_noop_timer(self, noop_client):
        """NoOp timer should not raise exceptions."""
        noop_client.timer("test.timer", 1.234, {"tag": "value"})

    @pytest.mark.asyncio
    async def test_noop_connect_and_close(self, noop_client):
        """NoOp connect and close should not raise exceptions."""
        await noop_client.connect()
        await noop_client.close()


class TestTelegrafCompatibilityClient:
    """Test the TelegrafCompatibilityClient wrapper."""

    @pytest.fixture
    def mock_telegraf_client(self):
        mock = Mock()
        mock.increment = Mock()
        mock.timer = Mock()
        mock.connect = AsyncMock()
        mock.close = AsyncMock()
        return mock

    @pytest.fixture
    def telegraf_client(self, mock_telegraf_client):
        return TelegrafCompatibilityClient(mock_telegraf_client)

    def test_telegraf_increment(self, telegraf_client, mock_telegraf_client):
        """Telegraf increment should delegate to underlying client."""
        telegraf_client.increment("uvs.verify.user", 1, {"verified": "true"})

        mock_telegraf_client.increment.assert_called_once_with(
            "uvs.verify.user", 1, tag_dict={"verified": "true"}
        )

    def test_telegraf_increment_no_tags(self, telegraf_client, mock_telegraf_client):
        """Telegraf increment should handle None tag_dict gracefully."""
        telegraf_client.increment("uvs.verify.unauthorized")

        mock_telegraf_client.increment.assert_called_once_with(
            "uvs.verify.unauthorized", 1, tag_dict={}
        )

    def test_telegraf_timer(self, telegraf_client, mock_telegraf_client):
        """Telegraf timer should delegate to underlying client."""
        telegraf_client.timer("uvs.server.request.time", 0.25, {"path": "/health"})

        mock_telegraf_client.timer.assert_called_once_with(
            "uvs.server.request.time", 0.25, tag_dict={"path": "/health"}
        )

    @pytest.mark.asyncio
    async def test_telegraf_connect(self, telegraf_client, mock_telegraf_client):
        await telegraf_client.connect()

        mock_telegraf_client.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_telegraf_close(self, telegraf_client, mock_telegraf_client):
        await telegraf_client.close()

        mock_telegraf_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_telegraf_close_error_is_logged(
        self, telegraf_client, mock_telegraf_client
    ):
        """Errors while closing should not propagate."""
        mock_telegraf_client.close.side_effect = OSError("socket closed")

        await telegraf_client.close()


class TestCreateMetricsClient:
    """Test the factory function."""

    def test_none_backend(self):
        assert isinstance(create_metrics_client("none"), NoOpMetricsClient)

    def test_backend_is_case_insensitive(self):
        assert isinstance(create_metrics_client("NONE"), NoOpMetricsClient)

    @patch("org.matrix.uvs.app.metrics.TelegrafStatsdClient")
    def test_telegraf_backend(self, mock_telegraf_class):
        client = create_metrics_client("telegraf", host="telegraf", port=8125)

        assert isinstance(client, TelegrafCompatibilityClient)
        mock_telegraf_class.assert_called_once_with(
            host="telegraf", port=8125, debug=False
        )

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="Invalid metrics backend"):
            create_metrics_client("graphite")
