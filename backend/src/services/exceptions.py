"""
Shared exceptions for service layer operations.

Every error the service layer raises derives from ServiceError and carries the
HTTP status the API reports it with. Messages are shown to clients verbatim, so
they never contain query text, stack traces or upstream response bodies.
"""


class ServiceError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Raised when an upload is malformed. Always the caller's fault."""

    status_code = 400
    default_message = "Bad request."


class PayloadTooLargeError(ValidationError):
    """Raised when an upload (or its decompressed content) exceeds the size ceiling."""

    status_code = 413

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Profile exceeds the maximum size of {limit} bytes.")


class InvalidArchiveError(ValidationError):
    """Raised when the upload is not a readable ZIP archive."""


class ManifestMissingError(ValidationError):
    """Raised when the archive has no manifest entry."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"Invalid ZIP archive: {filename} file is missing.")


class ManifestInvalidError(ValidationError):
    """Raised when the manifest cannot be parsed or violates the schema."""


class InvalidOAuthStateError(ValidationError):
    """Raised when the OAuth callback state does not match the login cookie."""

    default_message = "OAuth state parameter is invalid."


class AuthError(ServiceError):
    """
    Raised for missing, expired or invalid credentials.

    The message is generic; the reason is only logged server-side.
    """

    status_code = 401
    default_message = "Invalid or expired token."


class InvalidOrConsumedTokenError(AuthError):
    """
    Raised when a refresh token is unknown, expired or already redeemed.

    These cases are indistinguishable to the caller so that replaying a stolen,
    already-used token reveals nothing about whether it was ever valid.
    """

    default_message = "Invalid refresh token."


class ForbiddenError(ServiceError):
    """Raised when the caller does not own the resource being mutated."""

    status_code = 403
    default_message = "Forbidden."


class NotFoundError(ServiceError):
    """Raised when a resource does not exist."""

    status_code = 404
    default_message = "Not found."


class ConflictError(ServiceError):
    """Raised when a concurrent write won the race. Safe for the caller to retry."""

    status_code = 409
    default_message = "The resource was modified concurrently. Please retry."


class UpstreamUnavailableError(ServiceError):
    """
    Raised when the identity provider, blob storage or database fails or times out.

    Safe for the caller to retry with backoff; nothing in the service retries.
    """

    status_code = 503
    default_message = "A backing service is unavailable. Please try again later."
