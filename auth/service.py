"""Authentication service - credentials sign-in and session lifecycle."""

import logging
from uuid import UUID

from auth.config import AuthConfig
from auth.credentials import CredentialVerifier, parse_artifact
from auth.database import AuthDatabase
from auth.session import SessionManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import AuthenticatedUser, Session
from auth.exceptions import InvalidCredentialsError, RateLimitedError, UserStatusError
from auth.user_status import UserStatusEngine

logger = logging.getLogger(__name__)


class AuthService:
    """Turns a validated identity claim into a session.

    Handles:
    - Credentials sign-in (password or server-issued artifact)
    - The status gate before a session is created
    - Default role assignment on first sign-in
    - Logout and session validation
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        verifier: CredentialVerifier,
        status_engine: UserStatusEngine,
        session_manager: SessionManager,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._verifier = verifier
        self._status_engine = status_engine
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger

    def signin(
        self,
        username: str,
        credential: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> AuthenticatedUser:
        """Authenticate and create a session.

        Flow:
        1. Check per-username lockout
        2. Authorize the credential (password or artifact)
        3. Status gate
        4. Ensure the user has a role
        5. Create session, reset the failure counter, log

        Raises:
            RateLimitedError: too many recent failures for this username.
            InvalidCredentialsError: unknown user or bad credential.
            UserStatusError: account may not log in.
        """
        try:
            self._rate_limiter.check_rate_limit(username)
        except RateLimitedError:
            self._security_logger.log(
                SecurityEvent.RATE_LIMITED,
                username=username,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        try:
            user = self._verifier.authorize(username, credential)
        except InvalidCredentialsError as e:
            self._rate_limiter.record_failure(username)
            self._security_logger.log(
                SecurityEvent.SIGNIN_FAILED,
                username=username,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": str(e)},
            )
            raise

        status = self._status_engine.check_status(user.id)
        if not status.is_valid:
            self._security_logger.log(
                SecurityEvent.STATUS_GATE_REJECTED,
                username=user.username,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"flow": "signin"},
            )
            raise UserStatusError(status.reason or "User status is not valid", status.status)

        self._ensure_role(user.id)

        session = self._session_manager.create_session(user.id, user.username)
        self._rate_limiter.reset_rate_limit(username)

        self._security_logger.log(
            SecurityEvent.SIGNIN_SUCCEEDED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"method": "artifact" if parse_artifact(credential) else "password"},
        )
        self._security_logger.log(
            SecurityEvent.SESSION_CREATED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        # Refresh to pick up last_login_at written by the status check
        user = self._auth_db.get_user_by_id(user.id) or user
        return AuthenticatedUser(user=user, session=session)

    def _ensure_role(self, user_id: UUID) -> None:
        """Give a role-less user the configured default. Failure doesn't block sign-in."""
        try:
            if self._auth_db.get_user_role(user_id) is None:
                self._auth_db.assign_role(user_id, self._config.default_role)
        except Exception:
            logger.warning("Could not assign default role to user %s", user_id, exc_info=True)

    def logout(self, session_token: str, ip_address: str | None) -> None:
        """Revoke session. Safe to call with an invalid token."""
        try:
            session = self._session_manager.validate_session(session_token)
            username, user_id = session.username, session.user_id
        except Exception:
            username, user_id = None, None

        self._session_manager.revoke_session(session_token)

        self._security_logger.log(
            SecurityEvent.SESSION_REVOKED,
            username=username,
            user_id=user_id,
            ip_address=ip_address,
        )

    def validate_session(self, token: str) -> Session:
        """Raises SessionExpiredError if the session is invalid or expired."""
        return self._session_manager.validate_session(token)
