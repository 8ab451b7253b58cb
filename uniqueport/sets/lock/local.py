import asyncio
import time
import uuid

import structlog

from uniqueport.sets.lock.base import BaseLeaseMutex, LockHandle

LOG = structlog.get_logger()


class LocalLeaseMutex(BaseLeaseMutex):
    """Lease table held in process memory. Only excludes callers on the same event loop."""

    def __init__(self, retry_interval: float = 0.01) -> None:
        self._retry_interval = retry_interval
        # name -> (token, expires_at)
        self._leases: dict[str, tuple[str, float]] = {}

    def holder(self, name: str) -> str | None:
        lease = self._leases.get(name)
        if lease is None or lease[1] <= time.monotonic():
            return None
        return lease[0]

    async def lock(self, name: str, lease_seconds: float) -> LockHandle:
        token = uuid.uuid4().hex
        while True:
            now = time.monotonic()
            if self.holder(name) is None:
                self._leases[name] = (token, now + lease_seconds)
                return LockHandle(name=name, token=token, lease_seconds=lease_seconds, acquired_at=now)
            await asyncio.sleep(self._retry_interval)

    async def unlock(self, handle: LockHandle) -> None:
        if self.holder(handle.name) != handle.token:
            LOG.warning("Lease no longer held at release", lock_name=handle.name)
            return
        del self._leases[handle.name]
