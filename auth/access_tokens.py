"""Temporary access tokens: bearer strings that log a user in without a password.

Two kinds share one table and one token format (``tlt_`` + random):

- REUSABLE login links. Valid until their own expiry, never stamped. Issued
  with the user's own expiry, or a one-year fallback for users who never expire.
- SINGLE_USE sign-in tokens. Short-lived, and stamped with ``used_at`` on the
  first successful validation so every later attempt fails.

Validation re-runs the status engine on the owner every time; a token minted
before an account was disabled stops working the moment it is disabled.
Callers only ever see one generic "invalid or expired" failure. The security
log records the specific cause.
"""

import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import NoReturn
from uuid import UUID, uuid4

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.exceptions import InvalidTokenError, UserNotFoundError, UserStatusError
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import TemporaryAccessToken, TokenKind, TokenValidation, User, UserStatus
from auth.user_status import UserStatusEngine, evaluate_status
from utils.timezone import DAY, now_utc

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "tlt_"
INVALID_TOKEN_MESSAGE = "Login link is invalid or expired"


def generate_access_token() -> str:
    """URL-safe random token with the login-token prefix."""
    return f"{TOKEN_PREFIX}{secrets.token_urlsafe(32)}"


def describe_lifetime(expires_at: datetime, now: datetime, open_ended: bool = False) -> str:
    """Short human description of how long a token stays valid."""
    if open_ended:
        return "long-term"

    remaining = expires_at - now
    if remaining <= timedelta(0):
        return "expiring soon"
    if remaining < timedelta(hours=1):
        return f"{math.ceil(remaining / timedelta(minutes=1))} minutes"
    if remaining < DAY:
        return f"{math.ceil(remaining / timedelta(hours=1))} hours"

    days = math.ceil(remaining / DAY)
    if days > 365:
        return "long-term"
    if days > 30:
        return f"{math.ceil(days / 30)} months"
    return f"{days} days"


class AccessTokenStore:
    """Issues and validates temporary access tokens."""

    def __init__(
        self,
        auth_db: AuthDatabase,
        status_engine: UserStatusEngine,
        config: AuthConfig,
        security_logger: SecurityLogger,
    ):
        self._auth_db = auth_db
        self._status_engine = status_engine
        self._config = config
        self._security_logger = security_logger

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_reusable(
        self,
        user_id: UUID,
        issued_by: UUID | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[TemporaryAccessToken, User]:
        """Mint a reusable login link for the user.

        Lifetime is the user's own expires_at, or the fallback period when the
        account never expires.

        Raises:
            UserNotFoundError: no such user.
            UserStatusError: user is disabled, suspended, or expired.
        """
        user = self._load_issuable_user(user_id)
        now = now_utc()
        expires_at = user.expires_at or now + timedelta(days=self._config.reusable_token_fallback_days)

        token = self._store(user, TokenKind.REUSABLE, expires_at, issued_by, ip_address, user_agent, now)

        self._security_logger.log(
            SecurityEvent.LOGIN_LINK_ISSUED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"token_id": str(token.id), "issued_by": str(issued_by) if issued_by else None},
        )
        return token, user

    def issue_single_use(
        self,
        user_id: UUID,
        issued_by: UUID | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        lifetime: timedelta | None = None,
    ) -> tuple[TemporaryAccessToken, User]:
        """Mint a one-time sign-in token.

        Raises:
            UserNotFoundError: no such user.
            UserStatusError: user is disabled, suspended, or expired.
        """
        user = self._load_issuable_user(user_id)
        now = now_utc()
        if lifetime is None:
            lifetime = timedelta(minutes=self._config.single_use_token_expiry_minutes)

        token = self._store(user, TokenKind.SINGLE_USE, now + lifetime, issued_by, ip_address, user_agent, now)

        self._security_logger.log(
            SecurityEvent.SIGNIN_TOKEN_ISSUED,
            username=user.username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"token_id": str(token.id), "issued_by": str(issued_by) if issued_by else None},
        )
        return token, user

    def _load_issuable_user(self, user_id: UUID) -> User:
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        if user.status in (UserStatus.DISABLED, UserStatus.SUSPENDED):
            raise UserStatusError(
                "User is disabled or suspended; cannot issue a login link",
                user.status,
            )

        result = evaluate_status(user, now_utc()).result
        if not result.is_valid:
            raise UserStatusError("User has expired; cannot issue a login link", result.status)

        return user

    def _store(
        self,
        user: User,
        kind: TokenKind,
        expires_at: datetime,
        issued_by: UUID | None,
        ip_address: str | None,
        user_agent: str | None,
        now: datetime,
    ) -> TemporaryAccessToken:
        token = TemporaryAccessToken(
            id=uuid4(),
            user_id=user.id,
            token=generate_access_token(),
            kind=kind,
            expires_at=expires_at,
            created_by=issued_by,
            used_at=None,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
        )
        self._auth_db.store_access_token(token)
        logger.info("Issued %s token %s for user %s until %s", kind.value, token.id, user.id, expires_at)
        return token

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def validate(
        self,
        token: str,
        consume: bool = False,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenValidation:
        """Check a bearer token and the owner's status.

        consume=False accepts reusable login links; consume=True accepts
        single-use tokens and stamps them used.

        Raises:
            InvalidTokenError: unknown, expired, used, or of the other kind.
            UserNotFoundError: token is fine but its owner no longer exists.
            UserStatusError: token is fine but the owner may not log in.
        """
        record = self._auth_db.get_access_token(token)
        now = now_utc()
        expected_kind = TokenKind.SINGLE_USE if consume else TokenKind.REUSABLE

        failure = None
        if record is None:
            failure = "not_found"
        elif record.expires_at <= now:
            failure = "expired"
        elif record.kind != expected_kind:
            failure = "wrong_kind"
        elif consume and record.used_at is not None:
            failure = "already_used"

        if failure is not None:
            self._reject(record, failure, ip_address, user_agent)

        if self._auth_db.get_user_by_id(record.user_id) is None:
            self._log_rejection(record, "user_deleted", ip_address, user_agent)
            raise UserNotFoundError(f"User {record.user_id} not found")

        status = self._status_engine.check_status(record.user_id)
        if not status.is_valid:
            self._security_logger.log(
                SecurityEvent.STATUS_GATE_REJECTED,
                user_id=record.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"token_id": str(record.id), "status": status.status.value if status.status else None},
            )
            raise UserStatusError(status.reason or "User status is not valid", status.status)

        if consume:
            if not self._auth_db.mark_access_token_used(record.id, now):
                self._reject(record, "already_used", ip_address, user_agent)
            record = record.model_copy(update={"used_at": now})
            self._security_logger.log(
                SecurityEvent.ACCESS_TOKEN_CONSUMED,
                user_id=record.user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"token_id": str(record.id)},
            )

        user = self._auth_db.get_user_by_id(record.user_id)
        if user is None:
            self._log_rejection(record, "user_deleted", ip_address, user_agent)
            raise UserNotFoundError(f"User {record.user_id} not found")

        return TokenValidation(token=record, user=user, status=status)

    def _log_rejection(
        self,
        record: TemporaryAccessToken | None,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        self._security_logger.log(
            SecurityEvent.ACCESS_TOKEN_REJECTED,
            user_id=record.user_id if record else None,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"reason": reason, "token_id": str(record.id) if record else None},
        )

    def _reject(
        self,
        record: TemporaryAccessToken | None,
        reason: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> NoReturn:
        self._log_rejection(record, reason, ip_address, user_agent)
        raise InvalidTokenError(INVALID_TOKEN_MESSAGE)
