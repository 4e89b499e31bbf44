"""Session token lifecycle management.

Sessions are stored in Valkey with a TTL matching session expiry, plus a
per-user index so that disabling or deleting an account can end every session
it holds.
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.types import Session
from auth.exceptions import SessionExpiredError
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Session token lifecycle with a sliding expiry window."""

    KEY_PREFIX = "session:"
    USER_INDEX_PREFIX = "user_sessions:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._ttl_seconds = config.session_expiry_hours * 3600

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def _user_key(self, user_id: UUID) -> str:
        return f"{self.USER_INDEX_PREFIX}{user_id}"

    def _save(self, session: Session) -> None:
        self._valkey.set_json(
            self._key(session.token),
            {
                "user_id": str(session.user_id),
                "username": session.username,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
                "last_activity_at": session.last_activity_at.isoformat(),
            },
            expire_seconds=self._ttl_seconds,
        )
        self._valkey.add_to_set(
            self._user_key(session.user_id),
            session.token,
            expire_seconds=self._ttl_seconds,
        )

    def create_session(self, user_id: UUID, username: str) -> Session:
        """Create a new session with a cryptographically random token."""
        now = now_utc()
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            username=username,
            created_at=now,
            expires_at=now + timedelta(hours=self._config.session_expiry_hours),
            last_activity_at=now,
        )
        self._save(session)
        return session

    def validate_session(self, token: str) -> Session:
        """Return the session and slide its expiry forward.

        Raises:
            SessionExpiredError: token unknown or expired.
        """
        data = self._valkey.get_json(self._key(token))

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            user_id=UUID(data["user_id"]),
            username=data["username"],
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
            last_activity_at=parse_iso(data["last_activity_at"]),
        )

        now = now_utc()
        if now > session.expires_at:
            self.revoke_session(token)
            raise SessionExpiredError("Session expired")

        session = session.model_copy(update={
            "expires_at": now + timedelta(hours=self._config.session_expiry_hours),
            "last_activity_at": now,
        })
        self._save(session)
        return session

    def revoke_session(self, token: str) -> None:
        """Revoke one session. Safe to call with a nonexistent token."""
        data = self._valkey.get_json(self._key(token))
        self._valkey.delete(self._key(token))
        if data is not None:
            self._valkey.remove_from_set(self._user_key(UUID(data["user_id"])), token)

    def revoke_user_sessions(self, user_id: UUID) -> int:
        """End every session of a user. Returns how many were live."""
        tokens = self._valkey.set_members(self._user_key(user_id))
        revoked = sum(1 for token in tokens if self._valkey.delete(self._key(token)))
        self._valkey.delete(self._user_key(user_id))
        if revoked:
            logger.info("Revoked %d sessions for user %s", revoked, user_id)
        return revoked
