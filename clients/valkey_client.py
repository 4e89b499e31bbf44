"""
Valkey (Redis-compatible) client for sessions and sign-in rate limiting.

Thin wrapper around redis-py. Connection URL comes from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import json
import logging
from typing import Set

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set("key", "value", expire_seconds=300)
        value = client.get("key")  # None if missing
    """

    def __init__(self, url: str):
        """
        Connect and ping immediately.

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def ping(self) -> bool:
        """Health check. Raises redis.ConnectionError if unreachable."""
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """Value for key, or None if it doesn't exist."""
        return self._client.get(key)

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        """Set key to value, optionally with a TTL in seconds."""
        if expire_seconds is not None:
            self._client.setex(key, expire_seconds, value)
        else:
            self._client.set(key, value)

    def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        return self._client.delete(key) > 0

    def exists(self, key: str) -> bool:
        return self._client.exists(key) > 0

    def ttl(self, key: str) -> int:
        """
        Remaining TTL in seconds.

        Returns -2 if the key doesn't exist, -1 if it has no expiration.
        """
        return self._client.ttl(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set TTL on an existing key. Returns False if the key doesn't exist."""
        return bool(self._client.expire(key, seconds))

    def incr(self, key: str) -> int:
        """Increment key by 1, creating it at 1. Returns the new value."""
        return self._client.incr(key)

    def add_to_set(self, key: str, member: str, expire_seconds: int | None = None) -> None:
        """Add member to a set, refreshing the set's TTL when given."""
        self._client.sadd(key, member)
        if expire_seconds is not None:
            self._client.expire(key, expire_seconds)

    def remove_from_set(self, key: str, member: str) -> None:
        self._client.srem(key, member)

    def set_members(self, key: str) -> Set[str]:
        """Members of a set; empty if the key doesn't exist."""
        return set(self._client.smembers(key))

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        """Set key to a JSON-serialized value."""
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key: str) -> dict | list | None:
        """
        Get and deserialize a JSON value.

        Returns None if key doesn't exist.
        Raises ValueError if value is not valid JSON.
        """
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in key '{key}': {e}")

    def close(self) -> None:
        self._client.close()
        logger.info("ValkeyClient closed")
