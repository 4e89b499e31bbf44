"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    UserStatusError,
    ClaimMismatchError,
    InvalidCredentialsError,
    RateLimitedError,
    UserNotFoundError,
    UserConflictError,
    NotAuthenticatedError,
    PermissionDeniedError,
    SessionExpiredError,
    ProtectedUserError,
)
from auth.types import (
    User,
    UserStatus,
    Session,
    StatusCheckResult,
    StatusDisplay,
    TemporaryAccessToken,
    TokenKind,
    TokenValidation,
    LoginGrant,
    AuthenticatedUser,
)
from auth.permissions import Role, Permission, has_permission
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.user_status import UserStatusEngine, evaluate_status
from auth.access_tokens import AccessTokenStore
from auth.credentials import CredentialVerifier
from auth.login import LoginOrchestrator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
