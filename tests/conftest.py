"""Shared test fixtures for the mailadmin test suite.

Unit tests run against in-memory stand-ins for the Postgres-backed
AuthDatabase and for ValkeyClient, so no infrastructure is required. The
stand-ins implement the same method names and return types as the real
classes.
"""

import fnmatch
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Set
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from auth.config import AuthConfig
from auth.credentials import hash_password
from auth.exceptions import UserConflictError
from auth.permissions import Role
from auth.security_logger import SecurityLogger
from auth.types import TemporaryAccessToken, User, UserStatus
from utils.timezone import now_utc
from utils.user_context import clear_acting_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

ADMIN_ID = UUID("00000000-0000-0000-0000-000000000001")


# =============================================================================
# IN-MEMORY STAND-INS
# =============================================================================


class InMemoryAuthDatabase:
    """Dict-backed AuthDatabase with the same surface as the real one."""

    def __init__(self):
        self.users: dict[UUID, User] = {}
        self.password_hashes: dict[UUID, str | None] = {}
        self.roles: dict[UUID, Role] = {}
        self.tokens: dict[str, TemporaryAccessToken] = {}

    # Users

    def get_user_by_id(self, user_id: UUID) -> User | None:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return next((u for u in self.users.values() if u.username == username), None)

    def get_user_by_email(self, email: str) -> User | None:
        return next(
            (u for u in self.users.values() if u.email and u.email.lower() == email.lower()),
            None,
        )

    def get_password_hash(self, user_id: UUID) -> str | None:
        return self.password_hashes.get(user_id)

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
        if self.get_user_by_username(username) or (email and self.get_user_by_email(email)):
            raise UserConflictError("Username or email already exists")
        user = User(
            id=uuid4(),
            username=username,
            email=email,
            name=name,
            status=status,
            expires_at=expires_at,
            created_at=now_utc(),
            created_by=created_by,
            is_admin_created=is_admin_created,
        )
        self.users[user.id] = user
        self.password_hashes[user.id] = password_hash
        return user

    def _matches(self, user: User, search: str | None) -> bool:
        if not search:
            return True
        needle = search.lower()
        return any(needle in (value or "").lower() for value in (user.username, user.email, user.name))

    def list_users(self, search: str | None, limit: int, offset: int) -> list[tuple[User, Role | None]]:
        matched = sorted(
            (u for u in self.users.values() if self._matches(u, search)),
            key=lambda u: u.created_at,
            reverse=True,
        )
        return [(u, self.roles.get(u.id)) for u in matched[offset:offset + limit]]

    def count_users(self, search: str | None) -> int:
        return sum(1 for u in self.users.values() if self._matches(u, search))

    def _update(self, user_id: UUID, **changes) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users[user_id] = user.model_copy(update=changes)
        return True

    def set_status(self, user_id: UUID, status: UserStatus) -> bool:
        return self._update(user_id, status=status)

    def set_expiry(self, user_id: UUID, expires_at: datetime | None) -> bool:
        return self._update(user_id, expires_at=expires_at, status=UserStatus.ACTIVE)

    def mark_expired(self, user_id: UUID, at: datetime) -> bool:
        return self._update(user_id, status=UserStatus.EXPIRED, last_login_at=at)

    def update_last_login(self, user_id: UUID, at: datetime) -> None:
        self._update(user_id, last_login_at=at)

    def delete_user(self, user_id: UUID) -> bool:
        if self.users.pop(user_id, None) is None:
            return False
        self.password_hashes.pop(user_id, None)
        self.roles.pop(user_id, None)
        self.tokens = {k: t for k, t in self.tokens.items() if t.user_id != user_id}
        return True

    # Roles

    def get_user_role(self, user_id: UUID) -> Role | None:
        return self.roles.get(user_id)

    def assign_role(self, user_id: UUID, role: Role) -> None:
        self.roles[user_id] = role

    # Temporary access tokens

    def store_access_token(self, token: TemporaryAccessToken) -> None:
        self.tokens[token.token] = token

    def get_access_token(self, token: str) -> TemporaryAccessToken | None:
        return self.tokens.get(token)

    def mark_access_token_used(self, token_id: UUID, used_at: datetime) -> bool:
        for key, record in self.tokens.items():
            if record.id == token_id:
                if record.used_at is not None:
                    return False
                self.tokens[key] = record.model_copy(update={"used_at": used_at})
                return True
        return False


class FakeValkey:
    """Dict-backed ValkeyClient. TTLs are recorded but never elapse."""

    def __init__(self):
        self.data: dict[str, object] = {}
        self.ttls: dict[str, int] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        value = self.data.get(key)
        return None if isinstance(value, set) else value

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        self.data[key] = value
        if expire_seconds:
            self.ttls[key] = expire_seconds

    def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return key in self.data

    def ttl(self, key: str) -> int:
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    def incr(self, key: str) -> int:
        value = int(self.data.get(key) or 0) + 1
        self.data[key] = str(value)
        return value

    def add_to_set(self, key: str, member: str, expire_seconds: int | None = None) -> None:
        self.data.setdefault(key, set()).add(member)
        if expire_seconds:
            self.ttls[key] = expire_seconds

    def remove_from_set(self, key: str, member: str) -> None:
        members = self.data.get(key)
        if isinstance(members, set):
            members.discard(member)

    def set_members(self, key: str) -> Set[str]:
        members = self.data.get(key)
        return set(members) if isinstance(members, set) else set()

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        self.set(key, json.dumps(value), expire_seconds=expire_seconds)

    def get_json(self, key: str) -> dict | list | None:
        value = self.get(key)
        return json.loads(value) if value is not None else None

    def keys(self, pattern: str) -> list[str]:
        return [k for k in self.data if fnmatch.fnmatch(k, pattern)]

    def close(self) -> None:
        pass


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean acting-user context before and after each test."""
    clear_acting_user_id()
    yield
    clear_acting_user_id()


@pytest.fixture
def admin_id() -> UUID:
    return ADMIN_ID


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def auth_db():
    return InMemoryAuthDatabase()


@pytest.fixture
def valkey():
    return FakeValkey()


@pytest.fixture
def security_logger():
    """Security events are asserted on, not stored."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def config():
    return AuthConfig(app_base_url="https://mail.test.example.com/")


@pytest.fixture
def make_user(auth_db):
    """Factory inserting a user straight into the in-memory store."""

    def _make(
        username: str = "alice",
        status: UserStatus = UserStatus.ACTIVE,
        expires_in: timedelta | None = None,
        expires_at: datetime | None = None,
        role: Role | None = Role.CIVILIAN,
        email: str | None = None,
        password: str | None = None,
    ) -> User:
        if expires_in is not None:
            expires_at = now_utc() + expires_in
        user = auth_db.create_user(
            username=username,
            password_hash=hash_password(password) if password else None,
            email=email,
            status=status,
            expires_at=expires_at,
        )
        if role is not None:
            auth_db.assign_role(user.id, role)
        return user

    return _make
