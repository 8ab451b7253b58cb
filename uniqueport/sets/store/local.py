from uniqueport.sets.store.base import BaseSetItemStore


class LocalSetItemStore(BaseSetItemStore):
    """In-process store for local runs and tests. State dies with the process."""

    def __init__(self, length: int, name: str = "local") -> None:
        super().__init__(length)
        self._name = name
        self.items: dict[str, bytes] = {}

    @property
    def name(self) -> str:
        return self._name

    async def _read(self, key: str) -> bytes | None:
        return self.items.get(key)

    async def _write(self, key: str, blob: bytes) -> None:
        self.items[key] = bytes(blob)
