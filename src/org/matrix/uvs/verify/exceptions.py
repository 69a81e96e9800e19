class VerificationException(Exception):
    """
    Failure that stops verification before any remote lookup is attempted.

    Subclasses carry the HTTP status the request handlers respond with.
    """

    status: int = 500

    @staticmethod
    def homeserver_not_configured() -> "VerificationException":
        """Single-homeserver mode is active without a homeserver URL."""
        return VerificationException("error-uvs-1300 homeserver_url is not configured")


class CallerUnauthorizedException(VerificationException):
    """
    The caller did not present the configured shared secret.
    """

    status = 403

    @staticmethod
    def header_missing() -> "CallerUnauthorizedException":
        """No Authorization header was sent."""
        return CallerUnauthorizedException(
            "error-uvs-1000 Authorization header missing"
        )

    @staticmethod
    def wrong_scheme() -> "CallerUnauthorizedException":
        """The Authorization header does not use the Bearer scheme."""
        return CallerUnauthorizedException(
            "error-uvs-1001 Authorization header is not a Bearer token"
        )

    @staticmethod
    def wrong_token() -> "CallerUnauthorizedException":
        """The Bearer token does not match the shared secret."""
        return CallerUnauthorizedException("error-uvs-1002 Invalid Bearer token")


class BadRequestException(VerificationException):
    """
    The request is missing a field required to route it.
    """

    status = 400

    @staticmethod
    def server_name_missing() -> "BadRequestException":
        """matrix_server_name is required in multi-homeserver mode."""
        return BadRequestException("error-uvs-1100 matrix_server_name is required")


class HomeserverResolutionException(Exception):
    """
    The requested server name could not be turned into a usable homeserver URL.

    This is folded into a negative verification result rather than an HTTP error.
    """

    @staticmethod
    def invalid_server_name(server_name: str) -> "HomeserverResolutionException":
        return HomeserverResolutionException(
            f"error-uvs-1200 Invalid server name: {server_name}"
        )

    @staticmethod
    def blacklisted(host: str) -> "HomeserverResolutionException":
        return HomeserverResolutionException(
            f"error-uvs-1201 Homeserver {host} resolves to a blacklisted address"
        )
