"""Authentication configuration."""

from pydantic import BaseModel, Field, field_validator

from auth.permissions import Role


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations are in their natural units: minutes for staleness windows and
    short-lived tokens, hours for sessions, days for long-lived links.
    """

    # Temporary access tokens
    reusable_token_fallback_days: int = Field(
        default=365,
        description="Login link lifetime when the user has no expiry of their own",
        ge=1,
        le=3650,
    )
    single_use_token_expiry_minutes: int = Field(
        default=30,
        description="How long a one-time sign-in token remains valid",
        ge=5,
        le=1440,
    )

    # Credential artifact windows
    artifact_max_age_minutes: int = Field(
        default=10,
        description="How long a DIRECT_LOGIN_/TEMP_LOGIN_TOKEN_ artifact is accepted at sign-in",
        ge=1,
        le=60,
    )
    redirect_claim_max_age_minutes: int = Field(
        default=5,
        description="How long the auto-signin redirect URL stays usable",
        ge=1,
        le=30,
    )

    # Session settings
    session_expiry_hours: int = Field(
        default=720,  # 30 days
        description="Session lifetime in hours",
        ge=1,
        le=2160,
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max failed sign-ins per username per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )

    # Status display
    expiring_soon_days: int = Field(
        default=7,
        description="Accounts expiring within this many days are flagged",
        ge=1,
        le=90,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL for login link generation",
    )
    default_role: Role = Field(
        default=Role.CIVILIAN,
        description="Role given to users who sign in without one",
    )

    @field_validator("default_role")
    @classmethod
    def _default_role_not_emperor(cls, value: Role) -> Role:
        if value == Role.EMPEROR:
            raise ValueError("default_role cannot be emperor")
        return value

    @field_validator("app_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")
