"""Pydantic models for the auth domain.

Wire-facing models serialise with camelCase aliases (``isValid``,
``expiresAt``) to match the JSON the web client already consumes; Python code
uses the snake_case attribute names.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UserStatus(str, Enum):
    """Account lifecycle status. EXPIRED may be set by an admin or derived from expires_at."""

    ACTIVE = "active"
    EXPIRED = "expired"
    DISABLED = "disabled"
    SUSPENDED = "suspended"


class User(BaseModel):
    """A user account (without its credential)."""

    id: UUID
    username: str
    email: str | None = None
    name: str | None = None
    status: UserStatus = UserStatus.ACTIVE
    expires_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    created_by: UUID | None = None
    is_admin_created: bool = False

    model_config = ConfigDict(from_attributes=True)


class StatusCheckResult(CamelModel):
    """Outcome of a status check: whether a login may proceed, and why not."""

    is_valid: bool
    reason: str | None = None
    status: UserStatus | None = None
    expires_at: datetime | None = None
    days_remaining: int | None = None


class StatusDisplay(CamelModel):
    """Status summary shown on the profile and admin list."""

    status: UserStatus
    status_text: str
    status_color: str
    expires_at: datetime | None = None
    days_remaining: int | None = None
    is_expiring_soon: bool = False


class TokenKind(str, Enum):
    """How a temporary access token treats used_at."""

    REUSABLE = "reusable"  # login link, never stamped
    SINGLE_USE = "single_use"  # stamped on first successful validation


class TemporaryAccessToken(BaseModel):
    """A bearer token that stands in for a password for one user."""

    id: UUID
    user_id: UUID
    token: str = Field(..., description="Opaque bearer string with tlt_ prefix")
    kind: TokenKind
    expires_at: datetime
    created_by: UUID | None = None
    used_at: datetime | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class TokenValidation(BaseModel):
    """A token that passed validation, with its owner and the owner's status."""

    token: TemporaryAccessToken
    user: User
    status: StatusCheckResult


class LoginGrant(BaseModel):
    """Username plus credential artifact, ready to exchange for a session."""

    username: str
    user_id: UUID
    credential: str


class Session(BaseModel):
    """An active user session."""

    token: str = Field(..., description="Session token (opaque string)")
    user_id: UUID
    username: str
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class AuthenticatedUser(BaseModel):
    """User info returned after successful sign-in."""

    user: User
    session: Session


class SigninRequest(BaseModel):
    """Credentials sign-in. ``password`` may also carry a credential artifact."""

    username: str = Field(..., min_length=1, description="Username must not be empty")
    password: str = Field(..., min_length=1, description="Password must not be empty")


class TokenRequest(BaseModel):
    """Body for direct-login and token-signin."""

    token: str = Field(..., min_length=1, description="Token must not be empty")


class AutoSigninRequest(CamelModel):
    """Identity claim carried over from the direct-login redirect."""

    user_id: UUID
    username: str = Field(..., min_length=1)
    timestamp: int | None = Field(None, description="Redirect issue time, epoch ms")


class LoginLinkResponse(CamelModel):
    """Issued login link (reusable or single-use)."""

    login_url: str
    expires_at: datetime
    expires_in: str
    username: str
    is_reusable: bool
