import logging
from typing import Optional, Tuple

from org.matrix.uvs.app.config import Settings
from org.matrix.uvs.verify.client import IdentityClient
from org.matrix.uvs.verify.exceptions import HomeserverResolutionException
from org.matrix.uvs.verify.gate import check_caller_authorization
from org.matrix.uvs.verify.homeserver import HomeserverResolver
from org.matrix.uvs.verify.models import (
    IdentityLookup,
    LookupFailure,
    VerificationResult,
    VerifyUserInRoomRequest,
    VerifyUserRequest,
)

logger = logging.getLogger(__name__)


def server_name_of(user_id: str) -> str:
    """Return the server name part of a user ID such as ``@alice:example.org``."""
    _, _, server_name = user_id.partition(":")
    return server_name


class Verifier:
    """
    Verifies OpenID tokens and room membership on behalf of a caller.

    A verifier holds no per-request state. Each operation runs the caller authentication
    gate, selects the homeserver, and then issues at most two remote lookups: the OpenID
    userinfo lookup and, for room checks, the room member lookup.
    """

    def __init__(
        self,
        settings: Settings,
        client: IdentityClient,
        resolver: HomeserverResolver,
    ):
        self.settings = settings
        self.client = client
        self.resolver = resolver

    async def verify_user(
        self, request: VerifyUserRequest, authorization: Optional[str] = None
    ) -> VerificationResult:
        """
        Verify that the request's token belongs to a user.

        Args:
            request: The verification request
            authorization: The caller's Authorization header, if any

        Returns:
            VerificationResult with user_verified and user_id

        Raises:
            CallerUnauthorizedException: If the caller fails the shared secret check
            BadRequestException: If a server name is required but missing
        """
        check_caller_authorization(self.settings.auth_token, authorization)

        _, identity = await self._lookup_identity(request)
        if identity.subject is None:
            return VerificationResult.unverified(failure=identity.failure)

        return VerificationResult(user_verified=True, user_id=identity.subject)

    async def verify_user_in_room(
        self, request: VerifyUserInRoomRequest, authorization: Optional[str] = None
    ) -> VerificationResult:
        """
        Verify that the request's token belongs to a user who is a member of the room.

        The room member lookup is skipped entirely when the user cannot be verified.

        Args:
            request: The verification request
            authorization: The caller's Authorization header, if any

        Returns:
            VerificationResult with user_verified, room_membership_verified and user_id

        Raises:
            CallerUnauthorizedException: If the caller fails the shared secret check
            BadRequestException: If a server name is required but missing
        """
        check_caller_authorization(self.settings.auth_token, authorization)

        base_url, identity = await self._lookup_identity(request)
        if identity.subject is None or base_url is None:
            return VerificationResult.unverified(room=True, failure=identity.failure)

        # The admin API lives on the configured homeserver, which owns the access token.
        members_base_url = self.settings.homeserver_url or base_url
        members = await self.client.lookup_members(members_base_url, request.room_id)

        return VerificationResult(
            user_verified=True,
            room_membership_verified=identity.subject in members.members,
            user_id=identity.subject,
            failure=members.failure,
        )

    async def _lookup_identity(
        self, request: VerifyUserRequest
    ) -> Tuple[Optional[str], IdentityLookup]:
        try:
            base_url = await self.resolver.resolve(request.matrix_server_name)
        except HomeserverResolutionException as e:
            logger.info("Homeserver resolution failed: %s", e)
            return None, IdentityLookup.failed(LookupFailure.resolution)

        identity = await self.client.lookup_identity(base_url, request.token)

        if (
            identity.subject is not None
            and self.settings.openid_verify_any_homeserver
            and request.matrix_server_name is not None
            and server_name_of(identity.subject).lower()
            != request.matrix_server_name.strip().lower()
        ):
            logger.warning(
                "Homeserver for %s vouched for foreign user %s",
                request.matrix_server_name,
                identity.subject,
            )
            return base_url, IdentityLookup.failed(LookupFailure.server_mismatch)

        return base_url, identity
