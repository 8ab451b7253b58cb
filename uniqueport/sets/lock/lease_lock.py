import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from uniqueport.exceptions import LockTimeout
from uniqueport.sets.lock.base import BaseLeaseMutex, LockHandle

LOG = structlog.get_logger()


class LeaseLock:
    """Bounded-wait acquisition of a named lease mutex.

    The lease duration is fixed per instance and independent of how long a
    caller is willing to wait. When the wait times out, the pending acquisition
    is cancelled, and a lease that was granted in the meantime is released
    before ``LockTimeout`` reaches the caller. A timed-out caller never leaves a
    lock behind.
    """

    def __init__(self, mutex: BaseLeaseMutex, lease_seconds: float) -> None:
        self._mutex = mutex
        self.lease_seconds = lease_seconds

    async def acquire(self, name: str, wait_timeout: float) -> LockHandle:
        LOG.info("Waiting for lock", lock_name=name, wait_timeout=wait_timeout)
        attempt = asyncio.create_task(self._mutex.lock(name, self.lease_seconds))
        try:
            done, _ = await asyncio.wait({attempt}, timeout=wait_timeout)
        except asyncio.CancelledError:
            await self._abandon(attempt, name)
            raise

        if attempt in done:
            handle = attempt.result()
            LOG.info("Lock acquired", lock_name=name)
            return handle

        await self._abandon(attempt, name)
        LOG.warning("Timed out waiting for lock", lock_name=name, wait_timeout=wait_timeout)
        raise LockTimeout(name, wait_timeout)

    async def release(self, handle: LockHandle) -> None:
        """Release a held lease. Never raises: an expired or already released lease is only logged."""
        held_for = time.monotonic() - handle.acquired_at
        if held_for > handle.lease_seconds:
            LOG.warning(
                "Lease expired before release, another caller may have held the lock concurrently",
                lock_name=handle.name,
                held_for=round(held_for, 3),
                lease_seconds=handle.lease_seconds,
            )
        try:
            await self._mutex.unlock(handle)
        except Exception:
            LOG.warning("Failed to release lock", lock_name=handle.name, exc_info=True)
            return
        LOG.info("Lock released", lock_name=handle.name)

    @asynccontextmanager
    async def hold(self, name: str, wait_timeout: float) -> AsyncIterator[LockHandle]:
        handle = await self.acquire(name, wait_timeout)
        try:
            yield handle
        finally:
            await self.release(handle)

    async def _abandon(self, attempt: asyncio.Task[LockHandle], name: str) -> None:
        attempt.cancel()
        try:
            handle = await attempt
        except asyncio.CancelledError:
            return
        except Exception:
            LOG.warning("Abandoned lock attempt failed", lock_name=name, exc_info=True)
            return
        LOG.warning("Lock granted after the caller stopped waiting, releasing it", lock_name=name)
        await self.release(handle)
