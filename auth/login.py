"""Passwordless login flows.

Each flow ends in a ``LoginGrant``: a username plus a credential artifact that
``AuthService.signin`` accepts in place of the password. None of them ever
touch the user's real password.

- direct-login: reusable login link -> DIRECT_LOGIN_ artifact. The browser GET
  variant hands back a redirect claim (user id, username, issue time) instead,
  which the auto-signin step redeems.
- auto-signin: redirect claim -> DIRECT_LOGIN_ artifact. The claim is only
  honoured for a few minutes so a leaked redirect URL goes stale quickly.
- token-signin: single-use token (consumed) -> TEMP_LOGIN_TOKEN_ artifact.

Every flow re-runs the status engine, so a since-disabled user is refused even
with an unexpired link.
"""

from dataclasses import dataclass
from uuid import UUID

from auth.access_tokens import AccessTokenStore
from auth.config import AuthConfig
from auth.credentials import (
    DIRECT_LOGIN_PREFIX,
    MAX_CLOCK_SKEW_MS,
    TEMP_LOGIN_PREFIX,
    build_artifact,
)
from auth.database import AuthDatabase
from auth.exceptions import (
    ClaimMismatchError,
    InvalidTokenError,
    UserNotFoundError,
    UserStatusError,
)
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import LoginGrant
from auth.user_status import UserStatusEngine
from utils.timezone import now_millis


@dataclass(frozen=True)
class RedirectClaim:
    """Identity carried on the auto-signin redirect URL."""

    user_id: UUID
    username: str
    timestamp: int


class LoginOrchestrator:
    """Runs the three passwordless login flows."""

    def __init__(
        self,
        auth_db: AuthDatabase,
        token_store: AccessTokenStore,
        status_engine: UserStatusEngine,
        config: AuthConfig,
        security_logger: SecurityLogger,
    ):
        self._auth_db = auth_db
        self._token_store = token_store
        self._status_engine = status_engine
        self._config = config
        self._security_logger = security_logger
        self._claim_max_age_ms = config.redirect_claim_max_age_minutes * 60 * 1000

    def direct_login(
        self,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginGrant:
        """Redeem a reusable login link. The link stays valid afterwards.

        Raises:
            InvalidTokenError: link unknown or expired.
            UserStatusError: owner may not log in.
            UserNotFoundError: owner no longer exists.
        """
        validation = self._token_store.validate(
            token, consume=False, ip_address=ip_address, user_agent=user_agent
        )
        user = validation.user

        grant = LoginGrant(
            username=user.username,
            user_id=user.id,
            credential=build_artifact(DIRECT_LOGIN_PREFIX, user.id),
        )
        self._security_logger.log(
            SecurityEvent.DIRECT_LOGIN_ACCEPTED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"token_id": str(validation.token.id)},
        )
        return grant

    def direct_login_claim(
        self,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RedirectClaim:
        """Browser variant of direct-login: validate the link, return a redirect claim.

        Raises:
            InvalidTokenError: link unknown or expired.
            UserStatusError: owner may not log in.
            UserNotFoundError: owner no longer exists.
        """
        validation = self._token_store.validate(
            token, consume=False, ip_address=ip_address, user_agent=user_agent
        )
        return RedirectClaim(
            user_id=validation.user.id,
            username=validation.user.username,
            timestamp=now_millis(),
        )

    def auto_signin(
        self,
        user_id: UUID,
        username: str,
        timestamp: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginGrant:
        """Redeem a redirect claim produced by direct_login_claim.

        Raises:
            UserNotFoundError: no such user.
            ClaimMismatchError: username doesn't belong to user_id.
            InvalidTokenError: claim older than the redirect window.
            UserStatusError: user may not log in.
        """
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        if user.username != username:
            raise ClaimMismatchError("User information does not match")

        if timestamp is not None:
            age = now_millis() - timestamp
            if age > self._claim_max_age_ms or age < -MAX_CLOCK_SKEW_MS:
                raise InvalidTokenError("Sign-in link has expired, please open the login link again")

        status = self._status_engine.check_status(user.id)
        if not status.is_valid:
            self._security_logger.log(
                SecurityEvent.STATUS_GATE_REJECTED,
                username=user.username,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"flow": "auto_signin"},
            )
            raise UserStatusError(status.reason or "User status is not valid", status.status)

        grant = LoginGrant(
            username=user.username,
            user_id=user.id,
            credential=build_artifact(DIRECT_LOGIN_PREFIX, user.id),
        )
        self._security_logger.log(
            SecurityEvent.AUTO_SIGNIN_ACCEPTED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return grant

    def token_signin(
        self,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginGrant:
        """Redeem a single-use token. A second attempt with the same token fails.

        Raises:
            InvalidTokenError: token unknown, expired, or already used.
            UserStatusError: owner may not log in.
            UserNotFoundError: owner no longer exists.
        """
        validation = self._token_store.validate(
            token, consume=True, ip_address=ip_address, user_agent=user_agent
        )
        user = validation.user

        grant = LoginGrant(
            username=user.username,
            user_id=user.id,
            credential=build_artifact(TEMP_LOGIN_PREFIX, user.id),
        )
        self._security_logger.log(
            SecurityEvent.TOKEN_SIGNIN_ACCEPTED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"token_id": str(validation.token.id)},
        )
        return grant
