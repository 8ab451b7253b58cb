from uniqueport.config import settings
from uniqueport.sets.distributed_set import DistributedSet
from uniqueport.sets.factory import create_mutex, create_store, default_port_range
from uniqueport.sets.lock.base import BaseLeaseMutex
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.models import PortRange
from uniqueport.sets.store.base import BaseSetItemStore


class DistributedSetRegistry:
    """Owns one store and one lease mutex and builds a DistributedSet over them per key.

    Sets keep no state between calls, so nothing is cached per key.
    """

    def __init__(
        self,
        store: BaseSetItemStore,
        mutex: BaseLeaseMutex,
        port_range: PortRange,
        wait_timeout: float,
        lease_seconds: float,
    ) -> None:
        self.store = store
        self.port_range = port_range
        self.wait_timeout = wait_timeout
        self._lease_lock = LeaseLock(mutex, lease_seconds=lease_seconds)

    @classmethod
    def from_settings(cls) -> "DistributedSetRegistry":
        port_range = default_port_range()
        return cls(
            store=create_store(length=port_range.length),
            mutex=create_mutex(),
            port_range=port_range,
            wait_timeout=settings.LOCK_WAIT_TIMEOUT_SECONDS,
            lease_seconds=settings.LOCK_LEASE_SECONDS,
        )

    def get(self, key: str) -> DistributedSet:
        return DistributedSet(
            key=key,
            store=self.store,
            lease_lock=self._lease_lock,
            port_range=self.port_range,
            wait_timeout=self.wait_timeout,
        )
