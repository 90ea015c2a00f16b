"""Error taxonomy shared by services and the HTTP layer."""


class MessengerError(Exception):
    """Base error. Unexpected failures map to 500."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class AuthenticationError(MessengerError):
    """Missing or invalid session."""

    status_code = 401


class AuthorizationError(MessengerError):
    """Valid session, insufficient membership or role."""

    status_code = 403


class ValidationError(MessengerError):
    """Malformed input. Carries field-level detail when available."""

    status_code = 400

    def __init__(
        self,
        message: str = "Validation error",
        errors: dict[str, list[str]] | None = None,
    ):
        super().__init__(message)
        self.errors = errors or {}


class NotFoundError(MessengerError):
    """Dangling identity reference."""

    status_code = 404


class UpstreamError(MessengerError):
    """A dependency (media store, OAuth provider) failed."""

    status_code = 500
