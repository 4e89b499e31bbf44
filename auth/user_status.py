"""User status engine - the single gate every login passes through.

The rules live in ``evaluate_status``, a pure function of the stored user row
and the current time. ``UserStatusEngine.check_status`` is the side-effecting
query built on top of it: it loads the row, evaluates it, and reconciles the
store when an active account has run past its expiry (the row is flipped to
``expired``). It also stamps ``last_login_at`` on success. Both writes are
best-effort; a failed write is logged and the evaluated result is still
returned.

Explicit disabled/suspended/expired states are checked before the expiry
timestamp, so an administrator-forced state always wins over the derived one.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import StatusCheckResult, StatusDisplay, User, UserStatus
from utils.timezone import DAY, now_utc

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = "User does not exist"
REASON_DISABLED = "This account has been disabled by an administrator. Please contact the administrator."
REASON_SUSPENDED = "This account has been suspended. Please contact the administrator."
REASON_EXPIRED = "This account has expired. Please contact the administrator to renew it."
REASON_SYSTEM_ERROR = "System error, please try again later"


def days_until(expires_at: datetime, now: datetime) -> int:
    """Whole days left, rounded up. Zero or negative once expired."""
    return math.ceil((expires_at - now) / DAY)


@dataclass
class StatusEvaluation:
    """Result of the pure rules plus whether the store needs the expiry transition."""

    result: StatusCheckResult
    needs_expiry_write: bool = False


def evaluate_status(user: User, now: datetime) -> StatusEvaluation:
    """Apply the status rules to a user row without touching the store."""
    status = user.status

    if status == UserStatus.DISABLED:
        return StatusEvaluation(
            StatusCheckResult(is_valid=False, reason=REASON_DISABLED, status=status)
        )

    if status == UserStatus.SUSPENDED:
        return StatusEvaluation(
            StatusCheckResult(is_valid=False, reason=REASON_SUSPENDED, status=status)
        )

    if status == UserStatus.EXPIRED:
        # Sticks even if expires_at was cleared or moved into the future.
        return StatusEvaluation(
            StatusCheckResult(
                is_valid=False,
                reason=REASON_EXPIRED,
                status=status,
                expires_at=user.expires_at,
            )
        )

    if status == UserStatus.ACTIVE:
        if user.expires_at is not None and now > user.expires_at:
            return StatusEvaluation(
                StatusCheckResult(
                    is_valid=False,
                    reason=REASON_EXPIRED,
                    status=UserStatus.EXPIRED,
                    expires_at=user.expires_at,
                ),
                needs_expiry_write=True,
            )

        days_remaining = None
        if user.expires_at is not None:
            days_remaining = days_until(user.expires_at, now)

        return StatusEvaluation(
            StatusCheckResult(
                is_valid=True,
                status=status,
                expires_at=user.expires_at,
                days_remaining=days_remaining,
            )
        )

    raise ValueError(f"Unhandled user status: {status!r}")


def status_display(user: User, now: datetime, expiring_soon_days: int = 7) -> StatusDisplay:
    """Human-facing summary of the user's effective status.

    Uses the effective status, so an active account past its expiry already
    reads as expired before anything has reconciled the row.
    """
    status = evaluate_status(user, now).result.status

    days_remaining = None
    is_expiring_soon = False
    if user.expires_at is not None:
        days_remaining = days_until(user.expires_at, now)
        is_expiring_soon = 0 < days_remaining <= expiring_soon_days

    if status == UserStatus.ACTIVE:
        if user.expires_at is None:
            text = "Never expires"
        elif days_remaining > 0:
            text = f"{days_remaining} days remaining"
        else:
            text = "Active"
        color = "orange" if is_expiring_soon else "green"
    elif status == UserStatus.EXPIRED:
        text, color = "Expired", "red"
    elif status == UserStatus.DISABLED:
        text, color = "Disabled", "gray"
    elif status == UserStatus.SUSPENDED:
        text, color = "Suspended", "yellow"
    else:
        raise ValueError(f"Unhandled user status: {status!r}")

    return StatusDisplay(
        status=status,
        status_text=text,
        status_color=color,
        expires_at=user.expires_at,
        days_remaining=days_remaining,
        is_expiring_soon=is_expiring_soon,
    )


class UserStatusEngine:
    """Computes and enforces whether a user may log in.

    Never raises for store failures: a failed read yields an invalid result
    with a system-error reason, failed writes are logged and ignored.
    """

    def __init__(
        self,
        auth_db: AuthDatabase,
        security_logger: SecurityLogger | None = None,
        config: AuthConfig | None = None,
    ):
        self._auth_db = auth_db
        self._security_logger = security_logger
        self._config = config or AuthConfig()

    def check_status(self, user_id: UUID) -> StatusCheckResult:
        """Check the user's validity, reconciling auto-expiry in the store.

        Side effects (best-effort):
        - active user past expires_at: persisted as expired
        - valid user: last_login_at stamped
        """
        now = now_utc()

        try:
            user = self._auth_db.get_user_by_id(user_id)
        except Exception:
            logger.exception("Failed to load user %s for status check", user_id)
            return StatusCheckResult(is_valid=False, reason=REASON_SYSTEM_ERROR)

        if user is None:
            return StatusCheckResult(is_valid=False, reason=REASON_NOT_FOUND)

        evaluation = evaluate_status(user, now)

        if evaluation.needs_expiry_write:
            self._persist_expiry(user, now)
        elif evaluation.result.is_valid:
            self._touch_last_login(user.id, now)

        return evaluation.result

    def describe(self, user_id: UUID) -> StatusDisplay | None:
        """Status display for a user, or None if the user doesn't exist."""
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            return None
        return status_display(user, now_utc(), self._config.expiring_soon_days)

    def _persist_expiry(self, user: User, now: datetime) -> None:
        try:
            self._auth_db.mark_expired(user.id, now)
        except Exception:
            logger.warning(
                "Could not record expiry with last_login_at for user %s, retrying status only",
                user.id,
                exc_info=True,
            )
            try:
                self._auth_db.set_status(user.id, UserStatus.EXPIRED)
            except Exception:
                logger.error("Failed to persist expiry for user %s", user.id, exc_info=True)
                return

        logger.info("User %s auto-expired (expires_at=%s)", user.id, user.expires_at)
        if self._security_logger is not None:
            self._security_logger.log_quietly(
                SecurityEvent.USER_AUTO_EXPIRED,
                username=user.username,
                user_id=user.id,
                details={"expires_at": user.expires_at.isoformat()},
            )

    def _touch_last_login(self, user_id: UUID, now: datetime) -> None:
        try:
            self._auth_db.update_last_login(user_id, now)
        except Exception:
            # e.g. last_login_at column not migrated yet
            logger.warning("Could not update last_login_at for user %s", user_id, exc_info=True)
