from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LockHandle:
    """Proof of ownership of a named lease. Only the holder's token can release it."""

    name: str
    token: str
    lease_seconds: float
    acquired_at: float
    backend_lock: Any = field(default=None, repr=False)


class BaseLeaseMutex(ABC):
    """A named mutex whose ownership expires after a fixed lease.

    ``lock`` blocks until the name is free and must stay cancellable: a caller
    that stops waiting cancels the pending attempt.
    """

    @abstractmethod
    async def lock(self, name: str, lease_seconds: float) -> LockHandle: ...

    @abstractmethod
    async def unlock(self, handle: LockHandle) -> None: ...
