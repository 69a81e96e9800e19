"""Remote lookups against a homeserver.

Both lookups issue exactly one GET request with a bounded timeout and no retries. Any
failure is returned as a result carrying a LookupFailure reason instead of being raised,
so callers branch on the result explicitly.
"""

import asyncio
import logging
from typing import Any, Dict
from urllib.parse import quote, urlencode
from aiohttp import ClientError, ClientSession, ClientTimeout
import sentry_sdk

from org.matrix.uvs.app.config import Settings
from org.matrix.uvs.verify.models import IdentityLookup, LookupFailure, MembersLookup

logger = logging.getLogger(__name__)

USERINFO_PATH = "/_matrix/federation/v1/openid/userinfo"
ROOM_MEMBERS_PATH = "/_synapse/admin/v1/rooms/{room_id}/members"


def userinfo_url(base_url: str, token: str) -> str:
    return f"{base_url}{USERINFO_PATH}?{urlencode({'access_token': token})}"


def room_members_url(base_url: str, room_id: str) -> str:
    return base_url + ROOM_MEMBERS_PATH.format(room_id=quote(room_id, safe="!:@"))


class IdentityClient:
    """
    Client for the homeserver APIs the verifier depends on.

    Attributes:
        session: Shared aiohttp client session
        access_token: Admin access token sent to the Synapse admin API, if configured
        timeout: Total timeout applied to every request
    """

    def __init__(self, session: ClientSession, settings: Settings):
        self.session = session
        self.access_token = settings.access_token
        self.timeout = ClientTimeout(total=settings.request_timeout)

    async def lookup_identity(self, base_url: str, token: str) -> IdentityLookup:
        """
        Ask a homeserver who owns an OpenID token.

        Args:
            base_url: Homeserver base URL
            token: OpenID access token supplied by the caller

        Returns:
            IdentityLookup with the token's subject, or with a failure reason
        """
        try:
            async with self.session.get(
                userinfo_url(base_url, token), timeout=self.timeout
            ) as resp:
                if resp.status // 100 != 2:
                    logger.info(
                        "OpenID userinfo lookup on %s returned status %s",
                        base_url,
                        resp.status,
                    )
                    return IdentityLookup.failed(LookupFailure.status)
                body: Any = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("OpenID userinfo lookup on %s timed out", base_url)
            return IdentityLookup.failed(LookupFailure.timeout)
        except ClientError as e:
            logger.warning("OpenID userinfo lookup on %s failed: %s", base_url, e)
            return IdentityLookup.failed(LookupFailure.transport)
        except ValueError:
            logger.info("OpenID userinfo lookup on %s returned invalid JSON", base_url)
            return IdentityLookup.failed(LookupFailure.malformed)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Unexpected error during OpenID userinfo lookup")
            return IdentityLookup.failed(LookupFailure.transport)

        subject = body.get("sub", None) if isinstance(body, dict) else None
        if not isinstance(subject, str) or len(subject) == 0:
            logger.info("OpenID userinfo response from %s has no subject", base_url)
            return IdentityLookup.failed(LookupFailure.malformed)

        return IdentityLookup.found(subject)

    async def lookup_members(self, base_url: str, room_id: str) -> MembersLookup:
        """
        List the members of a room through the Synapse admin API.

        Args:
            base_url: Homeserver base URL
            room_id: Room ID, e.g. ``!abc:example.org``

        Returns:
            MembersLookup with the member user IDs, or with a failure reason
        """
        headers: Dict[str, str] = {}
        if self.access_token is not None:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            async with self.session.get(
                room_members_url(base_url, room_id),
                headers=headers,
                timeout=self.timeout,
            ) as resp:
                if resp.status // 100 != 2:
                    logger.info(
                        "Room member lookup for %s on %s returned status %s",
                        room_id,
                        base_url,
                        resp.status,
                    )
                    return MembersLookup.failed(LookupFailure.status)
                body: Any = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("Room member lookup for %s timed out", room_id)
            return MembersLookup.failed(LookupFailure.timeout)
        except ClientError as e:
            logger.warning("Room member lookup for %s failed: %s", room_id, e)
            return MembersLookup.failed(LookupFailure.transport)
        except ValueError:
            logger.info("Room member lookup for %s returned invalid JSON", room_id)
            return MembersLookup.failed(LookupFailure.malformed)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.exception("Unexpected error during room member lookup")
            return MembersLookup.failed(LookupFailure.transport)

        members = body.get("members", None) if isinstance(body, dict) else None
        if not isinstance(members, list):
            logger.info("Room member response for %s has no member list", room_id)
            return MembersLookup.failed(LookupFailure.malformed)

        return MembersLookup.found([m for m in members if isinstance(m, str)])
