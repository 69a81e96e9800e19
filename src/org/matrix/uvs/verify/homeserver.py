import logging
from typing import Optional
from aiohttp import ClientSession, ClientTimeout

from org.matrix.uvs.app.config import Settings
from org.matrix.uvs.resolve.server import (
    is_blacklisted_address,
    is_ip_literal,
    resolve_server,
)
from org.matrix.uvs.verify.exceptions import (
    BadRequestException,
    HomeserverResolutionException,
    VerificationException,
)

logger = logging.getLogger(__name__)


class HomeserverResolver:
    """
    Picks the homeserver base URL used for a request's remote lookups.

    In single-homeserver mode this is always the configured homeserver URL. In
    multi-homeserver mode the request's matrix_server_name is resolved with the Matrix
    server discovery rules. Unless the IP blacklist is disabled, IP literal targets are
    rejected here and hostnames are vetted by the session's BlacklistingResolver when
    it connects.
    """

    def __init__(self, settings: Settings, session: ClientSession):
        self.settings = settings
        self.session = session
        self.timeout = ClientTimeout(total=settings.request_timeout)

    async def resolve(self, matrix_server_name: Optional[str]) -> str:
        """
        Resolve the homeserver base URL for a request.

        Args:
            matrix_server_name: The server name supplied with the request, if any

        Returns:
            The homeserver base URL without a trailing slash

        Raises:
            VerificationException: If single-homeserver mode has no homeserver URL
            BadRequestException: If multi-homeserver mode is on and no server name was given
            HomeserverResolutionException: If the server name cannot be resolved or is blacklisted
        """
        if not self.settings.openid_verify_any_homeserver:
            if self.settings.homeserver_url is None:
                raise VerificationException.homeserver_not_configured()
            return self.settings.homeserver_url

        if matrix_server_name is None or len(matrix_server_name.strip()) == 0:
            raise BadRequestException.server_name_missing()

        resolved = await resolve_server(self.session, matrix_server_name, self.timeout)
        if resolved is None:
            raise HomeserverResolutionException.invalid_server_name(matrix_server_name)

        if (
            not self.settings.disable_ip_blacklist
            and is_ip_literal(resolved.host)
            and is_blacklisted_address(resolved.host)
        ):
            raise HomeserverResolutionException.blacklisted(resolved.host)

        logger.debug("Resolved %s to %s", matrix_server_name, resolved.base_url)
        return resolved.base_url
