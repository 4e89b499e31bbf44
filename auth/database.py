"""Database operations for users, roles, and temporary access tokens.

All tables here are administered globally; nothing is scoped to the caller.
Update methods return False when no row matched so callers can tell a
missing user from a successful write.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import psycopg2.errors

from clients.postgres_client import PostgresClient
from auth.exceptions import UserConflictError
from auth.permissions import Role
from auth.types import TemporaryAccessToken, User, UserStatus
from utils.timezone import now_utc

_USER_COLUMNS = """id, username, email, name, status, expires_at, last_login_at,
                   created_at, created_by, is_admin_created"""

_TOKEN_COLUMNS = """id, user_id, token, kind, expires_at, created_by, used_at,
                    ip_address, user_agent, created_at"""


def _as_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def _user_from_row(row: dict[str, Any]) -> User:
    return User(
        id=_as_uuid(row["id"]),
        username=row["username"],
        email=row["email"],
        name=row["name"],
        status=UserStatus(row["status"] or UserStatus.ACTIVE.value),
        expires_at=row["expires_at"],
        last_login_at=row["last_login_at"],
        created_at=row["created_at"],
        created_by=_as_uuid(row["created_by"]),
        is_admin_created=bool(row["is_admin_created"]),
    )


def _token_from_row(row: dict[str, Any]) -> TemporaryAccessToken:
    return TemporaryAccessToken(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        token=row["token"],
        kind=row["kind"],
        expires_at=row["expires_at"],
        created_by=_as_uuid(row["created_by"]),
        used_at=row["used_at"],
        ip_address=str(row["ip_address"]) if row["ip_address"] else None,
        user_agent=row["user_agent"],
        created_at=row["created_at"],
    )


class AuthDatabase:
    """Database operations for user lifecycle and temporary access."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user_by_id(self, user_id: UUID) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return _user_from_row(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        """Exact (case-sensitive) username match."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE username = %s",
            (username,),
        )
        return _user_from_row(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE lower(email) = lower(%s)",
            (email,),
        )
        return _user_from_row(row) if row else None

    def get_password_hash(self, user_id: UUID) -> str | None:
        """Stored bcrypt hash, or None for users without a password (OAuth-only)."""
        return self._db.execute_scalar(
            "SELECT password_hash FROM users WHERE id = %s",
            (user_id,),
        )

    def create_user(
        self,
        username: str,
        password_hash: str | None,
        email: str | None = None,
        name: str | None = None,
        status: UserStatus = UserStatus.ACTIVE,
        expires_at: datetime | None = None,
        created_by: UUID | None = None,
        is_admin_created: bool = False,
    ) -> User:
        """Insert a user.

        Raises:
            UserConflictError: username or email already exists.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (id, username, password_hash, email, name, status,
                                       expires_at, created_at, created_by, is_admin_created)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (
                    uuid4(),
                    username,
                    password_hash,
                    email,
                    name,
                    status.value,
                    expires_at,
                    now_utc(),
                    created_by,
                    is_admin_created,
                ),
            )
        except psycopg2.errors.UniqueViolation as e:
            raise UserConflictError("Username or email already exists") from e
        return _user_from_row(rows[0])

    def list_users(self, search: str | None, limit: int, offset: int) -> list[tuple[User, Role | None]]:
        """Page of users (newest first) with their role, optionally filtered."""
        pattern = f"%{search}%" if search else None
        rows = self._db.execute(
            """SELECT u.id, u.username, u.email, u.name, u.status, u.expires_at, u.last_login_at,
                      u.created_at, u.created_by, u.is_admin_created, r.role
                FROM users u
                LEFT JOIN user_roles r ON r.user_id = u.id
                WHERE %s::text IS NULL
                   OR u.username ILIKE %s OR u.email ILIKE %s OR u.name ILIKE %s
                ORDER BY u.created_at DESC
                LIMIT %s OFFSET %s""",
            (pattern, pattern, pattern, pattern, limit, offset),
        )
        return [
            (_user_from_row(row), Role(row["role"]) if row["role"] else None)
            for row in rows
        ]

    def count_users(self, search: str | None) -> int:
        pattern = f"%{search}%" if search else None
        return self._db.execute_scalar(
            """SELECT count(*) FROM users
               WHERE %s::text IS NULL
                  OR username ILIKE %s OR email ILIKE %s OR name ILIKE %s""",
            (pattern, pattern, pattern, pattern),
        ) or 0

    def set_status(self, user_id: UUID, status: UserStatus) -> bool:
        """Overwrite status. Expiry is left alone."""
        rows = self._db.execute_returning(
            "UPDATE users SET status = %s WHERE id = %s RETURNING id",
            (status.value, user_id),
        )
        return len(rows) > 0

    def set_expiry(self, user_id: UUID, expires_at: datetime | None) -> bool:
        """Set expiry (None = never) and reactivate the account."""
        rows = self._db.execute_returning(
            "UPDATE users SET expires_at = %s, status = %s WHERE id = %s RETURNING id",
            (expires_at, UserStatus.ACTIVE.value, user_id),
        )
        return len(rows) > 0

    def mark_expired(self, user_id: UUID, at: datetime) -> bool:
        """Record the auto-expiry transition together with the attempt time."""
        rows = self._db.execute_returning(
            "UPDATE users SET status = %s, last_login_at = %s WHERE id = %s RETURNING id",
            (UserStatus.EXPIRED.value, at, user_id),
        )
        return len(rows) > 0

    def update_last_login(self, user_id: UUID, at: datetime) -> None:
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (at, user_id),
        )

    def delete_user(self, user_id: UUID) -> bool:
        """Delete user; roles and tokens go with it (ON DELETE CASCADE)."""
        rows = self._db.execute_returning(
            "DELETE FROM users WHERE id = %s RETURNING id",
            (user_id,),
        )
        return len(rows) > 0

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_user_role(self, user_id: UUID) -> Role | None:
        value = self._db.execute_scalar(
            "SELECT role FROM user_roles WHERE user_id = %s",
            (user_id,),
        )
        return Role(value) if value else None

    def assign_role(self, user_id: UUID, role: Role) -> None:
        """Replace whatever role the user had."""
        self._db.execute_returning(
            """INSERT INTO user_roles (user_id, role, created_at)
               VALUES (%s, %s, %s)
               ON CONFLICT (user_id) DO UPDATE SET role = EXCLUDED.role, created_at = EXCLUDED.created_at
               RETURNING user_id""",
            (user_id, role.value, now_utc()),
        )

    # ------------------------------------------------------------------
    # Temporary access tokens
    # ------------------------------------------------------------------

    def store_access_token(self, token: TemporaryAccessToken) -> None:
        self._db.execute_returning(
            f"""INSERT INTO temp_access_tokens ({_TOKEN_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id""",
            (
                token.id,
                token.user_id,
                token.token,
                token.kind.value,
                token.expires_at,
                token.created_by,
                token.used_at,
                token.ip_address,
                token.user_agent,
                token.created_at,
            ),
        )

    def get_access_token(self, token: str) -> TemporaryAccessToken | None:
        """Exact match on the bearer string."""
        row = self._db.execute_single(
            f"SELECT {_TOKEN_COLUMNS} FROM temp_access_tokens WHERE token = %s",
            (token,),
        )
        return _token_from_row(row) if row else None

    def mark_access_token_used(self, token_id: UUID, used_at: datetime) -> bool:
        """Stamp used_at only if still unset.

        Returns False when another request stamped it first.
        """
        rows = self._db.execute_returning(
            """UPDATE temp_access_tokens
               SET used_at = %s
               WHERE id = %s AND used_at IS NULL
               RETURNING id""",
            (used_at, token_id),
        )
        return len(rows) > 0
