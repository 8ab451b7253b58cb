import asyncio
import time
import uuid

import structlog
from redis.asyncio import Redis
from redis.asyncio.lock import Lock
from redis.exceptions import LockNotOwnedError, RedisError

from uniqueport.sets.lock.base import BaseLeaseMutex, LockHandle

LOG = structlog.get_logger()


class RedisLeaseMutex(BaseLeaseMutex):
    """Lease mutex on top of redis-py's ``Lock`` (SET NX PX with a per-holder token).

    A cancelled acquisition may already have set the key. Before the
    cancellation propagates, the key is deleted if it still carries this
    attempt's token.
    """

    def __init__(self, redis_client: Redis, key_prefix: str, retry_interval: float = 0.1) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._retry_interval = retry_interval

    async def lock(self, name: str, lease_seconds: float) -> LockHandle:
        redis_lock = self._redis.lock(
            f"{self._key_prefix}{name}",
            timeout=lease_seconds,
            sleep=self._retry_interval,
            blocking=True,
            blocking_timeout=None,
        )
        token = uuid.uuid4().hex
        try:
            await redis_lock.acquire(token=token)
        except asyncio.CancelledError:
            await asyncio.shield(self._discard_attempt(redis_lock, name, token))
            raise
        return LockHandle(
            name=name,
            token=token,
            lease_seconds=lease_seconds,
            acquired_at=time.monotonic(),
            backend_lock=redis_lock,
        )

    async def _discard_attempt(self, redis_lock: Lock, name: str, token: str) -> None:
        try:
            await redis_lock.do_release(token)
        except LockNotOwnedError:
            return
        except RedisError:
            LOG.warning("Failed to remove the lease of a cancelled lock attempt", lock_name=name, exc_info=True)
            return
        LOG.info("Removed the lease of a cancelled lock attempt", lock_name=name)

    async def unlock(self, handle: LockHandle) -> None:
        # raises LockNotOwnedError when the lease already expired
        await handle.backend_lock.release()
