"""
User service for administrator operations on single accounts.

Handles the account lifecycle an operator drives by hand: create, list,
change expiry / status / role, delete, look up. Every mutation is written to
the audit log under the acting operator.
"""

import logging
import math
from datetime import timedelta
from uuid import UUID

from auth.credentials import hash_password
from auth.database import AuthDatabase
from auth.exceptions import ProtectedUserError, UserConflictError, UserNotFoundError
from auth.permissions import Role
from auth.session import SessionManager
from auth.types import User, UserStatus
from core.audit import AuditLogger, AuditAction, compute_changes
from core.models import Pagination, UserCreate, UserPage, UserProfile, UserSummary
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50

# Statuses that end every live session of the account
_LOCKOUT_STATUSES = {UserStatus.DISABLED, UserStatus.SUSPENDED}


def _user_state(user: User) -> dict:
    return user.model_dump(mode="json", include={"status", "expires_at"})


class UserService:
    """Service for administrator operations on individual users."""

    def __init__(
        self,
        auth_db: AuthDatabase,
        audit: AuditLogger,
        session_manager: SessionManager | None = None,
    ):
        self.auth_db = auth_db
        self.audit = audit
        self.session_manager = session_manager

    def _get_or_raise(self, user_id: UUID) -> User:
        user = self.auth_db.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def create_user(self, data: UserCreate, created_by: UUID) -> UserSummary:
        """
        Create a user on an administrator's behalf.

        Args:
            data: Validated creation data
            created_by: Operator creating the account

        Returns:
            The new user as it appears in the admin list

        Raises:
            UserConflictError: username or email already taken
        """
        if self.auth_db.get_user_by_username(data.username) is not None:
            raise UserConflictError("Username already exists")
        if data.email and self.auth_db.get_user_by_email(data.email) is not None:
            raise UserConflictError("Email already exists")

        expires_at = None
        if data.expiry_time:
            expires_at = now_utc() + timedelta(milliseconds=data.expiry_time)

        user = self.auth_db.create_user(
            username=data.username,
            password_hash=hash_password(data.password),
            email=data.email,
            name=data.name,
            status=data.status or UserStatus.ACTIVE,
            expires_at=expires_at,
            created_by=created_by,
            is_admin_created=True,
        )
        self.auth_db.assign_role(user.id, data.role)

        self._record_change(
            entity_id=user.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude={"password"}, exclude_none=True)},
            user_id=created_by,
        )
        logger.info(f"User {user.username} ({user.id}) created by {created_by}")

        return UserSummary.from_user(user, data.role)

    def list_users(self, page: int = 1, limit: int = 20, search: str | None = None) -> UserPage:
        """
        Page through users, newest first.

        Args:
            page: 1-based page number
            limit: Page size, capped at 50
            search: Substring matched against username, email and name
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        search = search or None

        rows = self.auth_db.list_users(search, limit, (page - 1) * limit)
        total = self.auth_db.count_users(search)

        return UserPage(
            users=[UserSummary.from_user(user, role) for user, role in rows],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    def set_expiry(
        self,
        user_id: UUID,
        expiry_time_ms: int,
        reason: str | None = None,
        operator: UUID | None = None,
    ) -> User:
        """
        Set the account to expire expiry_time_ms from now (0 = never) and reactivate it.

        Raises:
            UserNotFoundError: no such user
        """
        if expiry_time_ms < 0:
            raise ValueError("Expiry time cannot be negative")

        current = self._get_or_raise(user_id)
        expires_at = now_utc() + timedelta(milliseconds=expiry_time_ms) if expiry_time_ms > 0 else None

        if not self.auth_db.set_expiry(user_id, expires_at):
            raise UserNotFoundError(f"User {user_id} not found")

        updated = current.model_copy(update={"expires_at": expires_at, "status": UserStatus.ACTIVE})
        self._record_change(
            entity_id=user_id,
            action=AuditAction.UPDATE_EXPIRY,
            changes=compute_changes(_user_state(current), _user_state(updated)),
            user_id=operator,
            reason=reason,
        )
        return updated

    def set_status(
        self,
        user_id: UUID,
        status: UserStatus,
        reason: str | None = None,
        operator: UUID | None = None,
    ) -> User:
        """
        Overwrite the account status. Disabling or suspending ends live sessions.

        Raises:
            UserNotFoundError: no such user
        """
        current = self._get_or_raise(user_id)

        if not self.auth_db.set_status(user_id, status):
            raise UserNotFoundError(f"User {user_id} not found")

        updated = current.model_copy(update={"status": status})
        self._record_change(
            entity_id=user_id,
            action=AuditAction.UPDATE_STATUS,
            changes=compute_changes(_user_state(current), _user_state(updated)),
            user_id=operator,
            reason=reason,
        )

        if status in _LOCKOUT_STATUSES:
            self._end_sessions(user_id)

        return updated

    def assign_role(self, user_id: UUID, role: Role, operator: UUID | None = None) -> Role:
        """
        Replace the user's role.

        Raises:
            UserNotFoundError: no such user
            ProtectedUserError: user is the emperor
        """
        self._get_or_raise(user_id)
        previous = self.auth_db.get_user_role(user_id)
        if previous == Role.EMPEROR:
            raise ProtectedUserError("The emperor's role cannot be changed")

        self.auth_db.assign_role(user_id, role)
        if previous != role:
            self._record_change(
                entity_id=user_id,
                action=AuditAction.ASSIGN_ROLE,
                changes={"role": {"old": previous.value if previous else None, "new": role.value}},
                user_id=operator,
            )
        return role

    def delete_user(self, user_id: UUID, operator: UUID | None = None) -> None:
        """
        Permanently delete a user.

        Raises:
            UserNotFoundError: no such user
            ProtectedUserError: user is the emperor
        """
        current = self._get_or_raise(user_id)
        if self.auth_db.get_user_role(user_id) == Role.EMPEROR:
            raise ProtectedUserError("The emperor cannot be deleted")

        self._end_sessions(user_id)
        if not self.auth_db.delete_user(user_id):
            raise UserNotFoundError(f"User {user_id} not found")

        self._record_change(
            entity_id=user_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")},
            user_id=operator,
        )
        logger.info(f"User {current.username} ({user_id}) deleted")

    def find_user(self, search_text: str) -> tuple[User, Role | None]:
        """
        Look a user up by exact email (if the text contains "@") or username.

        Raises:
            UserNotFoundError: no match
        """
        search_text = search_text.strip()
        if "@" in search_text:
            user = self.auth_db.get_user_by_email(search_text)
        else:
            user = self.auth_db.get_user_by_username(search_text)

        if user is None:
            raise UserNotFoundError("User not found")
        return user, self.auth_db.get_user_role(user.id)

    def get_profile(self, user_id: UUID) -> UserProfile:
        """
        The caller's own account details.

        Raises:
            UserNotFoundError: account no longer exists
        """
        user = self._get_or_raise(user_id)
        return UserProfile.from_user(user, self.auth_db.get_user_role(user_id))

    def _record_change(self, **kwargs) -> None:
        """Write an audit row for a change that is already applied."""
        try:
            self.audit.log_change(**kwargs)
        except Exception:
            logger.warning(f"Could not audit {kwargs['action'].value} for user {kwargs['entity_id']}", exc_info=True)

    def _end_sessions(self, user_id: UUID) -> None:
        if self.session_manager is None:
            return
        try:
            self.session_manager.revoke_user_sessions(user_id)
        except Exception:
            logger.warning(f"Could not revoke sessions for user {user_id}", exc_info=True)
