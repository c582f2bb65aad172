"""Redis-based distributed locking utilities."""

from collections.abc import Generator
from contextlib import contextmanager

import redis

from subsku.utils.redis import redis_client


class LockUnavailable(Exception):
    """Raised when the lock is held by someone else."""


@contextmanager
def RedisLock(
    key: str,
    ttl: int = 60,
    *,
    client: redis.Redis | None = None,
) -> Generator[None, None, None]:
    """Distributed lock using Redis SET NX with TTL.

    Usage:
        try:
            with RedisLock(f"webhook:orders/create:{order_id}", ttl=300):
                process()
        except LockUnavailable:
            logger.info("Another worker is processing this event")

    Args:
        key: Redis key for the lock (will be prefixed with "RedisLock:")
        ttl: Time-to-live in seconds; bounds how long a crashed holder blocks others
        client: Redis client, defaults to the shared one

    Raises:
        LockUnavailable: The lock is already held
    """
    r = client or redis_client
    full_key = f"RedisLock:{key}"
    if not r.set(full_key, "1", nx=True, ex=ttl):
        raise LockUnavailable(f"Could not acquire lock: {full_key}")

    try:
        yield
    finally:
        r.delete(full_key)
