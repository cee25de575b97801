"""Exceptions raised by the storefront client."""


class StorefrontError(Exception):
    """Base class for storefront client errors."""


class AuthenticationError(StorefrontError):
    """Raised when an operation needs a session token and none is available."""


class InvalidSessionError(StorefrontError):
    """
    Raised when a persisted token cannot be decoded into claims.

    The session guard recovers from this locally by resetting to an
    unauthenticated session; it only escapes from decode_claims().
    """


class SessionNotResolvedError(StorefrontError):
    """Raised when a guard check runs before the session has been resolved."""

    def __init__(self) -> None:
        super().__init__("Session state is still loading; call refresh() before guard checks")


class PermissionDeniedError(StorefrontError):
    """Raised when an admin-only operation is attempted without the admin role."""


class AuthRejectedError(StorefrontError):
    """
    Raised when the API rejects login or registration input.

    The message is the server's own message and is meant to be shown to the
    user verbatim.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ResponseValidationError(StorefrontError):
    """Raised when an API response body does not match the expected schema."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Unexpected response from {path}: {detail}")
