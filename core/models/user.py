"""User administration models (request bodies and results of admin operations)."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from auth.credentials import BCRYPT_MAX_BYTES
from auth.permissions import ASSIGNABLE_ROLES, Role
from auth.types import CamelModel, User, UserStatus
from utils.timezone import to_epoch_millis


def _millis(dt: datetime | None) -> int | None:
    return to_epoch_millis(dt) if dt is not None else None


class UserCreate(CamelModel):
    """Data required for an administrator to create a user."""

    username: str = Field(..., min_length=3, max_length=20)
    password: str = Field(..., min_length=6)
    role: Role
    email: EmailStr | None = None
    name: str | None = Field(None, max_length=255)
    expiry_time: int | None = Field(None, ge=0, description="Lifetime in ms from now; 0 or absent means never")
    status: UserStatus | None = None

    @field_validator("role")
    @classmethod
    def role_must_be_assignable(cls, value: Role) -> Role:
        if value not in ASSIGNABLE_ROLES:
            raise ValueError("Role must be one of duke, knight, civilian")
        return value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
        return value


class UserSummary(CamelModel):
    """One row of the admin user list."""

    id: UUID
    username: str
    email: str | None = None
    name: str | None = None
    role: Role
    status: UserStatus
    expires_at: int | None = None
    last_login_at: int | None = None
    created_at: int | None = None
    created_by: UUID | None = None
    is_admin_created: bool = False

    @classmethod
    def from_user(cls, user: User, role: Role | None) -> "UserSummary":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            role=role or Role.CIVILIAN,
            status=user.status,
            expires_at=_millis(user.expires_at),
            last_login_at=_millis(user.last_login_at),
            created_at=_millis(user.created_at),
            created_by=user.created_by,
            is_admin_created=user.is_admin_created,
        )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class UserPage(CamelModel):
    users: list[UserSummary]
    pagination: Pagination


class BatchAction(str, Enum):
    """Bulk operations an administrator can apply to many users at once."""

    EXTEND = "extend"
    SET_EXPIRY = "setExpiry"
    DISABLE = "disable"
    ENABLE = "enable"
    SUSPEND = "suspend"

    @property
    def needs_expiry(self) -> bool:
        return self in (BatchAction.EXTEND, BatchAction.SET_EXPIRY)


class BatchUserRequest(CamelModel):
    user_ids: list[UUID] = Field(..., min_length=1)
    action: BatchAction
    expiry_time: int | None = Field(None, ge=0)
    reason: str | None = Field(None, max_length=200)


class BatchResult(CamelModel):
    """Aggregate outcome of a batch operation."""

    success: bool
    updated_count: int
    message: str
    error: str | None = None


class RoleUpdate(CamelModel):
    role: Role

    @field_validator("role")
    @classmethod
    def role_must_be_assignable(cls, value: Role) -> Role:
        if value not in ASSIGNABLE_ROLES:
            raise ValueError("Role must be one of duke, knight, civilian")
        return value


class StatusUpdate(CamelModel):
    status: UserStatus
    reason: str | None = Field(None, max_length=200)


class ExpiryUpdate(CamelModel):
    expiry_time: int = Field(..., ge=0, description="Lifetime in ms from now; 0 clears the expiry")
    reason: str | None = Field(None, max_length=200)


class LoginLinkRequest(CamelModel):
    user_id: UUID


class UserSearch(CamelModel):
    search_text: str = Field(..., min_length=1)


class UserProfile(CamelModel):
    """What a signed-in user may see about their own account."""

    id: UUID
    username: str
    email: str | None = None
    name: str | None = None
    status: UserStatus
    expires_at: int | None = None
    created_at: int | None = None
    role: Role | None = None

    @classmethod
    def from_user(cls, user: User, role: Role | None) -> "UserProfile":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            status=user.status,
            expires_at=_millis(user.expires_at),
            created_at=_millis(user.created_at),
            role=role,
        )
