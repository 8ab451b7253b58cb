from abc import ABC, abstractmethod

import structlog

from uniqueport.exceptions import StoreError
from uniqueport.sets.bitvector import BitVector, decode, encode
from uniqueport.sets.models import SetItem

LOG = structlog.get_logger()


class BaseSetItemStore(ABC):
    """Reads and writes set items by key.

    Nothing here serializes concurrent callers. Every call must happen while
    the caller holds the set's lock, including the lazy creation done by
    ``fetch_or_create``.
    """

    def __init__(self, length: int) -> None:
        self.length = length

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the backing table. Used to derive lock names."""

    @abstractmethod
    async def _read(self, key: str) -> bytes | None:
        """Strongly consistent read of the encoded members blob, or None if the item does not exist."""

    @abstractmethod
    async def _write(self, key: str, blob: bytes) -> None:
        """Unconditional overwrite of the item."""

    async def fetch_or_create(self, key: str) -> SetItem:
        blob = await self._read(key)
        if blob is None:
            LOG.info("Saving initial set item", key=key, length=self.length)
            await self.save(SetItem(key=key, members=BitVector.full(self.length)))
            blob = await self._read(key)
            if blob is None:
                raise StoreError("set item missing right after it was created", key=key)
            LOG.info("Saved initial set item", key=key)

        item = SetItem(key=key, members=decode(blob, self.length))
        LOG.info("Fetched set item", key=key, available=item.members.count())
        return item

    async def save(self, item: SetItem) -> None:
        await self._write(item.key, encode(item.members))
