from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from uniqueport.exceptions import Exhausted, RangeError, StoreError, StoreUnavailable
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.models import PortRange, SetItem
from uniqueport.sets.store.base import BaseSetItemStore

LOG = structlog.get_logger()


class DistributedSet:
    """A set of integers from a fixed range, persisted as one item and shared between processes.

    Every operation runs the same sequence: acquire the set's lock, load (or
    lazily create) the item, flip one bit, save the item, release the lock. The
    lock is released whatever happens after it was acquired. No state is kept
    between calls; each one rebuilds the vector from the store.

    Build one instance per set and reuse it across calls.
    """

    def __init__(
        self,
        key: str,
        store: BaseSetItemStore,
        lease_lock: LeaseLock,
        port_range: PortRange,
        wait_timeout: float,
    ) -> None:
        if store.length != port_range.length:
            raise ValueError(
                f"Store length {store.length} does not match the range length {port_range.length}"
            )
        self.key = key
        self.port_range = port_range
        self.wait_timeout = wait_timeout
        self._store = store
        self._lease_lock = lease_lock
        self.lock_name = f"{store.name}-{key}"

    async def take_one(self) -> int:
        """Remove the lowest available element from the set and return it.

        Raises:
            LockTimeout: the lock was not acquired in time. Nothing was changed.
            StoreUnavailable: the item could not be read or written. Nothing was changed.
            FormatError: the stored item is corrupt or was written for a different range length.
            Exhausted: every element is taken.
        """
        async with self._locked():
            item = await self._load()
            index = item.members.next_set(0)
            if index is None:
                raise Exhausted(self.key)
            item.members.clear(index)
            await self._persist(item)

        element = self.port_range.element_at(index)
        LOG.info("Took port", set_key=self.key, port=element)
        return element

    async def give_back(self, element: int) -> None:
        """Return an element to the set. Returning an element that is already available is a no-op.

        Raises:
            RangeError: the element is outside the set's range. Checked before locking.
            LockTimeout, StoreUnavailable, FormatError: as for ``take_one``.
        """
        if not self.port_range.contains(element):
            raise RangeError(element, self.port_range.lower, self.port_range.upper)

        async with self._locked():
            item = await self._load()
            item.members.set(self.port_range.index_of(element))
            await self._persist(item)

        LOG.info("Gave back port", set_key=self.key, port=element)

    async def available(self) -> int:
        """Number of elements that can still be taken."""
        async with self._locked():
            item = await self._load()
        return item.members.count()

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        try:
            handle = await self._lease_lock.acquire(self.lock_name, self.wait_timeout)
        except StoreError as e:
            raise StoreUnavailable(self.key, str(e)) from e
        try:
            yield
        finally:
            await self._lease_lock.release(handle)

    async def _load(self) -> SetItem:
        try:
            return await self._store.fetch_or_create(self.key)
        except StoreError as e:
            raise StoreUnavailable(self.key, str(e)) from e

    async def _persist(self, item: SetItem) -> None:
        try:
            await self._store.save(item)
        except StoreError as e:
            raise StoreUnavailable(self.key, str(e)) from e
