"""
TTL key/value cache backed by Redis.

Values are JSON-encoded so budgets written by one worker process can be
read by any other. A Redis outage degrades to "no data" on read and a
logged no-op on write: callers treat missing budgets optimistically.
Version: 1.0.0
"""
import json
import logging
from typing import Any, Optional, Protocol

import redis

logger = logging.getLogger("cache")


class KeyValueCache(Protocol):
    """Interface the rate-limit coordinator depends on."""

    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    def forget(self, key: str) -> None: ...


class RedisCache:
    """JSON values in Redis with per-key expiry."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "catalog_sync") -> None:
        self._redis = redis_client
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._redis.get(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis error in cache get key={key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding undecodable cache entry key={key}")
            return None

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            self._redis.set(self._key(key), json.dumps(value), ex=ttl_seconds)
        except redis.RedisError as e:
            logger.error(f"Redis error in cache put key={key}: {e}")

    def forget(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except redis.RedisError as e:
            logger.error(f"Redis error in cache forget key={key}: {e}")
