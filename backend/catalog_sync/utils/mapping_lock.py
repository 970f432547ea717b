"""
Mapping write lock — one writer per (source tenant, destination tenant).

The mapping tables have no atomic check-and-create, so every task that may
create destination entities and record their mappings runs while holding
this lock for its tenant pair. Tasks for other pairs proceed in parallel.

Redis SET NX EX with an owner token; release only deletes the key if the
token still matches, so a lock that expired and was re-acquired by another
worker is never released by the late original holder.

The holder renews the key (token-checked PEXPIRE) while it works, so a
long dispatch keeps the lock past the initial TTL; a holder that dies stops
renewing and the key expires.

Unlike the rate-limit cache, this fails CLOSED: if Redis is unreachable the
lock is reported unavailable and the task is deferred.
Version: 1.0.0
"""
import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

import redis

from catalog_sync.core.exceptions import LockUnavailableError

logger = logging.getLogger(__name__)

KEY_PREFIX = "mapping_lock"
DEFAULT_LOCK_TTL = 300

RELEASE_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

EXTEND_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return 0
"""


class MappingWriteLock:
    """Keyed mutex over a tenant pair, shared by all worker processes."""

    def __init__(self, redis_client: redis.Redis, ttl: int = DEFAULT_LOCK_TTL) -> None:
        self._redis = redis_client
        self._ttl = ttl
        self._release_script = self._redis.register_script(RELEASE_LOCK_SCRIPT)
        self._extend_script = self._redis.register_script(EXTEND_LOCK_SCRIPT)

    @property
    def renew_interval(self) -> float:
        """Seconds between renewals; three chances before the key would expire."""
        return self._ttl / 3

    @staticmethod
    def lock_key(source_tenant: str, destination_tenant: str) -> str:
        return f"{KEY_PREFIX}:{source_tenant}:{destination_tenant}"

    def acquire(self, source_tenant: str, destination_tenant: str, token: str) -> bool:
        """Try to take the lock. Returns True if this caller now holds it."""
        key = self.lock_key(source_tenant, destination_tenant)
        try:
            acquired = self._redis.set(key, token, nx=True, ex=self._ttl)
        except redis.RedisError as e:
            logger.error(f"Redis error acquiring {key}: {e}")
            return False

        if acquired:
            logger.debug(f"Mapping lock ACQUIRED: key={key}, token={token}, ttl={self._ttl}s")
        else:
            logger.info(f"Mapping lock HELD: key={key}, holder={self.holder(source_tenant, destination_tenant)}")
        return bool(acquired)

    def release(self, source_tenant: str, destination_tenant: str, token: str) -> bool:
        """Release the lock if still owned by token."""
        key = self.lock_key(source_tenant, destination_tenant)
        try:
            released = self._release_script(keys=[key], args=[token])
        except redis.RedisError as e:
            logger.error(f"Redis error releasing {key}: {e}")
            return False
        if not released:
            logger.warning(f"Mapping lock {key} no longer owned by {token} at release")
        return bool(released)

    def extend(self, source_tenant: str, destination_tenant: str, token: str) -> bool:
        """Reset the TTL if token still owns the lock. False means the lock is lost."""
        key = self.lock_key(source_tenant, destination_tenant)
        try:
            extended = self._extend_script(keys=[key], args=[token, self._ttl * 1000])
        except redis.RedisError as e:
            logger.error(f"Redis error extending {key}: {e}")
            return False
        if not extended:
            logger.warning(f"Mapping lock {key} no longer owned by {token} at renewal")
        return bool(extended)

    def holder(self, source_tenant: str, destination_tenant: str) -> Optional[str]:
        try:
            value = self._redis.get(self.lock_key(source_tenant, destination_tenant))
        except redis.RedisError:
            return None
        if isinstance(value, bytes):
            return value.decode()
        return value

    @contextmanager
    def hold(
        self, source_tenant: str, destination_tenant: str, token: Optional[str] = None
    ) -> Iterator[str]:
        """
        Hold the pair lock for the duration of the block.

        Raises:
            LockUnavailableError: another worker holds the lock
        """
        token = token or uuid.uuid4().hex
        if not self.acquire(source_tenant, destination_tenant, token):
            raise LockUnavailableError(
                self.lock_key(source_tenant, destination_tenant),
                self.holder(source_tenant, destination_tenant),
            )
        try:
            yield token
        finally:
            self.release(source_tenant, destination_tenant, token)
