"""Typed exceptions for auth and user-lifecycle failures."""

from auth.types import UserStatus


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """
    Token or artifact is invalid, expired, or already used.

    The message never says which: callers must not be able to tell an unknown
    token from a spent one.
    """


class UserStatusError(AuthError):
    """The status engine refused the user (disabled, suspended, expired)."""

    def __init__(self, reason: str, status: UserStatus | None = None):
        self.reason = reason
        self.status = status
        super().__init__(reason)


class ClaimMismatchError(AuthError):
    """Auto-signin claim names a username that doesn't belong to the user id."""


class InvalidCredentialsError(AuthError):
    """Username/password (or artifact) rejected at sign-in."""


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class UserNotFoundError(AuthError):
    """No user with the given id or username."""


class UserConflictError(AuthError):
    """Username or email already taken."""


class NotAuthenticatedError(AuthError):
    """Request carries no authenticated user."""


class PermissionDeniedError(AuthError):
    """Authenticated user's role lacks the required permission."""


class SessionExpiredError(AuthError):
    """Session has expired or was revoked; the user must sign in again."""


class ProtectedUserError(AuthError):
    """Operation not allowed on the site owner account."""
