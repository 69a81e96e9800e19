import hmac
from typing import Optional

from org.matrix.uvs.verify.exceptions import CallerUnauthorizedException


def check_caller_authorization(
    auth_token: Optional[str], authorization: Optional[str]
) -> None:
    """
    Admit or reject the caller of a verification endpoint.

    When no shared secret is configured every caller is admitted. Otherwise the caller
    must send ``Authorization: Bearer <secret>`` with the exact secret.

    Args:
        auth_token: The configured shared secret, or None when caller auth is disabled
        authorization: The inbound Authorization header value, if any

    Raises:
        CallerUnauthorizedException: If the caller is not admitted
    """
    if not auth_token:
        return

    if authorization is None or len(authorization) == 0:
        raise CallerUnauthorizedException.header_missing()

    scheme, _, value = authorization.partition(" ")
    if scheme != "Bearer" or len(value) == 0:
        raise CallerUnauthorizedException.wrong_scheme()

    if not hmac.compare_digest(value.encode("utf-8"), auth_token.encode("utf-8")):
        raise CallerUnauthorizedException.wrong_token()
