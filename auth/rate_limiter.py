"""Rate limiting for credentials sign-in.

Counts failed attempts per username in Valkey with a sliding TTL: each
failure resets the expiry, so hammering a username extends its lockout.
A successful sign-in clears the counter.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-username failed sign-in limiter."""

    KEY_PREFIX = "ratelimit:signin:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _key(self, username: str) -> str:
        return f"{self.KEY_PREFIX}{username.lower()}"

    def check_rate_limit(self, username: str) -> None:
        """Raise if the username is locked out. Does not count an attempt.

        Raises:
            RateLimitedError: too many recent failures.
        """
        key = self._key(username)
        current = self._valkey.get(key)
        if current is not None and int(current) >= self._config.rate_limit_attempts:
            raise RateLimitedError(retry_after_seconds=max(self._valkey.ttl(key), 1))

    def record_failure(self, username: str) -> int:
        """Count a failed attempt and restart the window. Returns the new count."""
        key = self._key(username)
        count = self._valkey.incr(key)
        self._valkey.expire(key, self._window_seconds)
        return count

    def reset_rate_limit(self, username: str) -> None:
        """Reset after a successful sign-in."""
        self._valkey.delete(self._key(username))

    def get_remaining_attempts(self, username: str) -> int:
        current = self._valkey.get(self._key(username))
        if current is None:
            return self._config.rate_limit_attempts
        return max(self._config.rate_limit_attempts - int(current), 0)
