"""
services/token_cache.py — Redis-backed key/value store with TTL.

Shared by the auth layer (access-token blacklist) and the catalog client
(service-token mirror and response cache).

Lifecycle:
  cache = TokenCache(url)
  cache.connect()        # must complete before the app serves traffic
  cache.get(...) / set(...) / delete(...)
  cache.close()

Any call before connect() raises NotConnected. Any redis failure after
connect() is re-raised as CacheUnavailable so callers fail the request
instead of silently skipping a revocation check.
"""

from __future__ import annotations

import logging

import redis

from backend.musicbox.errors import CacheUnavailable, NotConnected

logger = logging.getLogger(__name__)


def _namespace(key: str) -> str:
    """Key prefix only. Blacklist keys embed raw tokens and must not be logged."""
    return key.split(":", 1)[0]


class TokenCache:

    def __init__(self, url: str, client: redis.Redis | None = None) -> None:
        self._url = url
        self._client = client
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Opens the connection pool and verifies the server answers PING."""
        if self._connected:
            return
        if self._client is None:
            self._client = redis.Redis.from_url(self._url, decode_responses=True)
        self._client.ping()
        self._connected = True
        logger.info("Redis token cache connected")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._connected = False

    def _require_client(self) -> redis.Redis:
        if not self._connected or self._client is None:
            raise NotConnected("TokenCache.connect() has not been called.")
        return self._client

    def get(self, key: str) -> str | None:
        client = self._require_client()
        try:
            return client.get(key)
        except redis.RedisError as exc:
            logger.error("Redis GET failed for %s:*: %s", _namespace(key), exc)
            raise CacheUnavailable() from exc

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """
        Stores `value`. With ttl_seconds the key expires on its own; None
        means no expiry. A non-positive ttl raises ValueError.
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        client = self._require_client()
        try:
            if ttl_seconds is not None:
                client.set(key, value, ex=int(ttl_seconds))
            else:
                client.set(key, value)
        except redis.RedisError as exc:
            logger.error("Redis SET failed for %s:*: %s", _namespace(key), exc)
            raise CacheUnavailable() from exc

    def delete(self, key: str) -> None:
        client = self._require_client()
        try:
            client.delete(key)
        except redis.RedisError as exc:
            logger.error("Redis DEL failed for %s:*: %s", _namespace(key), exc)
            raise CacheUnavailable() from exc
