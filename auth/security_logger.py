"""Security event logging for the login audit trail.

Append-only log to the security_events table. Every token issuance, every
accepted or rejected login, and every automatic status transition lands here.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    LOGIN_LINK_ISSUED = "login_link_issued"
    SIGNIN_TOKEN_ISSUED = "signin_token_issued"
    ACCESS_TOKEN_REJECTED = "access_token_rejected"
    ACCESS_TOKEN_CONSUMED = "access_token_consumed"
    DIRECT_LOGIN_ACCEPTED = "direct_login_accepted"
    AUTO_SIGNIN_ACCEPTED = "auto_signin_accepted"
    TOKEN_SIGNIN_ACCEPTED = "token_signin_accepted"
    STATUS_GATE_REJECTED = "status_gate_rejected"
    USER_AUTO_EXPIRED = "user_auto_expired"
    SIGNIN_SUCCEEDED = "signin_succeeded"
    SIGNIN_FAILED = "signin_failed"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        username: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, username, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                username,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    def log_quietly(self, event: SecurityEvent, **kwargs: Any) -> None:
        """Log an event from a code path whose outcome must not depend on the audit write."""
        try:
            self.log(event, **kwargs)
        except Exception:
            logger.warning("Failed to record security event %s", event.value, exc_info=True)

    def get_recent_events(
        self,
        username: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters."""
        conditions = []
        params = []

        if username:
            conditions.append("username = %s")
            params.append(username)

        if user_id:
            conditions.append("user_id = %s")
            params.append(str(user_id))

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self._db.execute(
            f"""SELECT id, event_type, username, user_id, ip_address, user_agent, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )
