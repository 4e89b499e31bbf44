"""Credential checks behind session issuance.

A sign-in carries ``{username, password}``. The password slot holds either the
user's real password or a server-issued credential artifact:

    DIRECT_LOGIN_{userId}_{epochMillis}       direct-login and auto-signin
    TEMP_LOGIN_TOKEN_{userId}_{epochMillis}   token-signin

An artifact is accepted only if the embedded id is the id of the user the
username resolves to and the timestamp is numeric and within the configured
window (10 minutes by default). Anything without an artifact prefix is
compared against the stored bcrypt hash.

The artifact strings are unsigned; their only protection is the id match and
the short window. The format is kept byte-for-byte for the existing web client.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

import bcrypt

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.exceptions import InvalidCredentialsError
from auth.types import User
from utils.timezone import now_millis

logger = logging.getLogger(__name__)

DIRECT_LOGIN_PREFIX = "DIRECT_LOGIN_"
TEMP_LOGIN_PREFIX = "TEMP_LOGIN_TOKEN_"
ARTIFACT_PREFIXES = (DIRECT_LOGIN_PREFIX, TEMP_LOGIN_PREFIX)

# Tolerated clock difference between the issuing and the verifying instance.
MAX_CLOCK_SKEW_MS = 60_000

BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class CredentialArtifact:
    prefix: str
    user_id: str
    issued_at_ms: int | None


def build_artifact(prefix: str, user_id: UUID, issued_at_ms: int | None = None) -> str:
    """Render an artifact; the timestamp defaults to now."""
    if prefix not in ARTIFACT_PREFIXES:
        raise ValueError(f"Unknown artifact prefix: {prefix}")
    if issued_at_ms is None:
        issued_at_ms = now_millis()
    return f"{prefix}{user_id}_{issued_at_ms}"


def parse_artifact(credential: str) -> CredentialArtifact | None:
    """Split an artifact into its parts, or None if it has no artifact prefix.

    A prefixed string with a missing or non-numeric timestamp still parses
    (issued_at_ms is None) so that it is rejected as an artifact rather than
    falling through to the password check.
    """
    for prefix in ARTIFACT_PREFIXES:
        if credential.startswith(prefix):
            body = credential[len(prefix):]
            user_part, sep, timestamp = body.rpartition("_")
            if not sep:
                return CredentialArtifact(prefix, body, None)
            issued_at = int(timestamp) if timestamp.isascii() and timestamp.isdigit() else None
            return CredentialArtifact(prefix, user_part, issued_at)
    return None


def artifact_is_fresh(
    artifact: CredentialArtifact,
    user_id: UUID,
    now_ms: int,
    max_age_ms: int,
) -> bool:
    """True iff the artifact names this user and was issued less than max_age_ms ago."""
    if artifact.user_id != str(user_id):
        return False
    if artifact.issued_at_ms is None:
        return False
    age = now_ms - artifact.issued_at_ms
    return -MAX_CLOCK_SKEW_MS <= age < max_age_ms


def hash_password(password: str) -> str:
    """bcrypt hash with a fresh salt.

    Raises:
        ValueError: password longer than bcrypt's 72-byte input limit.
    """
    encoded = password.encode()
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison; malformed hashes and oversize inputs never match."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


class CredentialVerifier:
    """The authorize step of session issuance."""

    def __init__(self, auth_db: AuthDatabase, config: AuthConfig):
        self._auth_db = auth_db
        self._max_age_ms = config.artifact_max_age_minutes * 60 * 1000

    def authorize(self, username: str, credential: str, now_ms: int | None = None) -> User:
        """Resolve the user and check the credential.

        Raises:
            InvalidCredentialsError: unknown user, stale or foreign artifact, wrong password.
        """
        user = self._auth_db.get_user_by_username(username)
        if user is None:
            raise InvalidCredentialsError("Invalid username or password")

        artifact = parse_artifact(credential)
        if artifact is not None:
            if now_ms is None:
                now_ms = now_millis()
            if artifact_is_fresh(artifact, user.id, now_ms, self._max_age_ms):
                return user
            logger.info(
                "Rejected %s artifact for user %s (claimed id=%s, issued_at=%s)",
                artifact.prefix.rstrip("_"),
                user.id,
                artifact.user_id,
                artifact.issued_at_ms,
            )
            raise InvalidCredentialsError("Login token is invalid or expired")

        password_hash = self._auth_db.get_password_hash(user.id)
        if not password_hash or not verify_password(credential, password_hash):
            raise InvalidCredentialsError("Invalid username or password")

        return user
