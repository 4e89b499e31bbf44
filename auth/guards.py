"""Request-level identity and permission checks for route handlers."""

from uuid import UUID

from starlette.requests import Request

from auth.database import AuthDatabase
from auth.exceptions import NotAuthenticatedError, PermissionDeniedError
from auth.permissions import Permission, has_permission


def current_user_id(request: Request) -> UUID | None:
    """The signed-in user for this request, as set by AuthMiddleware."""
    return getattr(request.state, "user_id", None)


class PermissionGuard:
    """Checks the caller's role before any mutation runs."""

    def __init__(self, auth_db: AuthDatabase):
        self._auth_db = auth_db

    def require_user(self, request: Request) -> UUID:
        """Raises NotAuthenticatedError if no one is signed in."""
        user_id = current_user_id(request)
        if user_id is None:
            raise NotAuthenticatedError("Authentication required")
        return user_id

    def require(self, request: Request, permission: Permission) -> UUID:
        """Return the caller's id if their role grants the permission.

        Raises:
            NotAuthenticatedError: no session.
            PermissionDeniedError: role lacks the permission.
        """
        user_id = self.require_user(request)
        if not has_permission(self._auth_db.get_user_role(user_id), permission):
            raise PermissionDeniedError("Insufficient permissions")
        return user_id
