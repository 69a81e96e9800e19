"""
Configuration Module for UVS Service

This module defines the configuration system for the UVS (User Verification Service),
using Pydantic for settings validation and dependency injection through AppKeys.

The Settings class is loaded once at startup from environment variables prefixed with
``UVS_`` and is read-only for the lifetime of the process. Request handlers access the
settings and shared resources through typed AppKeys.

Key configuration areas include:
- Homeserver selection (single homeserver or any homeserver)
- Caller authentication (shared secret)
- Outbound request behaviour (timeouts, IP blacklist)
- Monitoring and observability
"""

from typing import Final, Literal, Optional
import logging
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from aiohttp import web
from aiohttp import ClientSession

from org.matrix.uvs.app.metrics import MetricsClient


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the UVS service.

    Values are read from environment variables with the ``UVS_`` prefix, for example
    ``UVS_HOMESERVER_URL`` populates ``homeserver_url``. Settings can also be passed as
    keyword arguments, which is how tests construct them.

    Settings are organized into the following categories:
    - Homeserver selection
    - Caller authentication
    - Outbound requests
    - Network
    - Monitoring and observability
    """

    model_config = SettingsConfigDict(env_prefix="UVS_", frozen=True)

    # Homeserver selection
    homeserver_url: Optional[str] = None
    """
    Base URL of the homeserver used for OpenID verification and room membership lookups.
    Required unless openid_verify_any_homeserver is enabled.
    Set with UVS_HOMESERVER_URL environment variable.
    """

    openid_verify_any_homeserver: bool = False
    """
    Resolve the homeserver per request from the matrix_server_name field instead of
    always using homeserver_url.
    Set with UVS_OPENID_VERIFY_ANY_HOMESERVER environment variable.
    """

    access_token: Optional[str] = None
    """
    Admin access token for the Synapse admin API, used to list room members.
    Set with UVS_ACCESS_TOKEN environment variable.
    """

    # Caller authentication
    auth_token: Optional[str] = None
    """
    Shared secret callers must present as ``Authorization: Bearer <secret>``.
    Caller authentication is disabled when unset or empty.
    Set with UVS_AUTH_TOKEN environment variable.
    """

    # Outbound requests
    disable_ip_blacklist: bool = False
    """
    Allow resolved homeservers in private, loopback, link-local and reserved ranges.
    Only relevant when openid_verify_any_homeserver is enabled.
    Set with UVS_DISABLE_IP_BLACKLIST environment variable.
    """

    request_timeout: float = Field(default=10.0, gt=0)
    """
    Total timeout in seconds for each outbound request.
    Set with UVS_REQUEST_TIMEOUT environment variable.
    """

    # Network
    listen_address: str = "127.0.0.1"
    """
    Address for the service to listen on.
    Set with UVS_LISTEN_ADDRESS environment variable.
    """

    port: int = 3000
    """
    HTTP port for the service to listen on.
    Set with UVS_PORT environment variable.
    """

    debug: bool = False
    """
    Enable debug mode, which logs every outbound request.
    Set with UVS_DEBUG environment variable.
    """

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with UVS_SENTRY_DSN environment variable.
    """

    metrics_backend: Literal["telegraf", "none"] = "none"
    """
    Metrics backend to use.
    Set with UVS_METRICS_BACKEND environment variable.
    """

    statsd_host: str = "telegraf"
    """
    StatsD/Telegraf host for metrics collection.
    Set with UVS_STATSD_HOST environment variable.
    """

    statsd_port: int = 8125
    """
    StatsD/Telegraf port for metrics collection.
    Set with UVS_STATSD_PORT environment variable.
    """

    @field_validator("homeserver_url", "auth_token", "access_token", mode="before")
    @classmethod
    def empty_as_none(cls, v):
        """Treat empty environment variables as unset."""
        if isinstance(v, str) and len(v.strip()) == 0:
            return None
        return v

    @field_validator("homeserver_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_homeserver(self) -> "Settings":
        """
        A homeserver URL is required in single-homeserver mode.

        Raises:
            ValueError: If neither homeserver_url nor openid_verify_any_homeserver is set
        """
        if self.homeserver_url is None and not self.openid_verify_any_homeserver:
            raise ValueError(
                "homeserver_url is required unless openid_verify_any_homeserver is enabled"
            )
        return self


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""
