import asyncio
from unittest.mock import AsyncMock

import pytest

from uniqueport.exceptions import Exhausted, FormatError, LockTimeout, RangeError, StoreError, StoreUnavailable
from uniqueport.sets.bitvector import BitVector, encode
from uniqueport.sets.distributed_set import DistributedSet
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.lock.local import LocalLeaseMutex
from uniqueport.sets.models import PortRange
from uniqueport.sets.store.local import LocalSetItemStore

KEY = "test-set"


class YieldingLocalStore(LocalSetItemStore):
    """Yields to the event loop around every read and write so concurrent callers interleave."""

    async def _read(self, key: str) -> bytes | None:
        await asyncio.sleep(0)
        blob = await super()._read(key)
        await asyncio.sleep(0)
        return blob

    async def _write(self, key: str, blob: bytes) -> None:
        await asyncio.sleep(0)
        await super()._write(key, blob)
        await asyncio.sleep(0)


def _make_set(
    lower: int = 10000,
    length: int = 5,
    store: LocalSetItemStore | None = None,
    mutex: LocalLeaseMutex | None = None,
    wait_timeout: float = 5,
) -> DistributedSet:
    return DistributedSet(
        key=KEY,
        store=store or YieldingLocalStore(length, name="ports"),
        lease_lock=LeaseLock(mutex or LocalLeaseMutex(retry_interval=0.001), lease_seconds=15),
        port_range=PortRange(lower=lower, length=length),
        wait_timeout=wait_timeout,
    )


def test_lock_name_is_store_name_and_key():
    assert _make_set().lock_name == f"ports-{KEY}"


def test_store_length_must_match_range():
    with pytest.raises(ValueError):
        _make_set(length=5, store=LocalSetItemStore(6))


@pytest.mark.asyncio
async def test_first_take_creates_full_item():
    store = YieldingLocalStore(5, name="ports")
    distributed_set = _make_set(store=store)

    assert KEY not in store.items
    assert await distributed_set.take_one() == 10000

    item = await store.fetch_or_create(KEY)
    assert item.members.count() == 4
    assert not item.members.test(0)


@pytest.mark.asyncio
async def test_first_give_back_creates_full_item():
    store = YieldingLocalStore(5, name="ports")
    distributed_set = _make_set(store=store)

    await distributed_set.give_back(10002)

    assert store.items[KEY] == encode(BitVector.full(5))


@pytest.mark.asyncio
async def test_take_returns_lowest_available():
    distributed_set = _make_set()
    assert [await distributed_set.take_one() for _ in range(3)] == [10000, 10001, 10002]

    await distributed_set.give_back(10001)
    assert await distributed_set.take_one() == 10001
    assert await distributed_set.take_one() == 10003


@pytest.mark.asyncio
async def test_exhaustion_after_length_takes():
    store = YieldingLocalStore(5, name="ports")
    distributed_set = _make_set(store=store)
    taken = [await distributed_set.take_one() for _ in range(5)]

    assert sorted(taken) == list(range(10000, 10005))
    blob_before = store.items[KEY]
    with pytest.raises(Exhausted):
        await distributed_set.take_one()
    assert store.items[KEY] == blob_before


@pytest.mark.asyncio
async def test_every_taken_element_is_in_range():
    distributed_set = _make_set(lower=20000, length=12)
    taken = []
    for round_ in range(4):
        taken.extend([await distributed_set.take_one() for _ in range(3)])
        await distributed_set.give_back(taken[round_])

    assert all(20000 <= port < 20012 for port in taken)


@pytest.mark.asyncio
async def test_concurrent_takes_are_distinct():
    distributed_set = _make_set(length=64)

    taken = await asyncio.gather(*(distributed_set.take_one() for _ in range(40)))

    assert len(set(taken)) == 40


@pytest.mark.asyncio
async def test_concurrent_takes_from_separate_instances_are_distinct():
    store = YieldingLocalStore(32, name="ports")
    mutex = LocalLeaseMutex(retry_interval=0.001)
    sets = [_make_set(length=32, store=store, mutex=mutex) for _ in range(4)]

    taken = await asyncio.gather(*(s.take_one() for s in sets for _ in range(5)))

    assert len(set(taken)) == 20


@pytest.mark.asyncio
async def test_lazy_init_with_three_concurrent_takes():
    distributed_set = _make_set(lower=10000, length=3)

    taken = await asyncio.gather(*(distributed_set.take_one() for _ in range(3)))

    assert set(taken) == {10000, 10001, 10002}


@pytest.mark.asyncio
async def test_give_back_is_idempotent():
    store = YieldingLocalStore(5, name="ports")
    distributed_set = _make_set(store=store)
    port = await distributed_set.take_one()

    await distributed_set.give_back(port)
    once = store.items[KEY]
    await distributed_set.give_back(port)

    assert store.items[KEY] == once
    assert once == encode(BitVector.full(5))


@pytest.mark.asyncio
@pytest.mark.parametrize("port", [9999, 10005, -1, 70000])
async def test_give_back_out_of_range_fails_before_locking(port: int):
    mutex = LocalLeaseMutex()
    mutex.lock = AsyncMock(side_effect=AssertionError("must not lock"))  # type: ignore[method-assign]
    store = YieldingLocalStore(5, name="ports")
    distributed_set = _make_set(store=store, mutex=mutex)

    with pytest.raises(RangeError):
        await distributed_set.give_back(port)

    assert store.items == {}


@pytest.mark.asyncio
async def test_lock_timeout_leaves_store_untouched():
    store = YieldingLocalStore(5, name="ports")
    mutex = LocalLeaseMutex(retry_interval=0.001)
    distributed_set = _make_set(store=store, mutex=mutex, wait_timeout=0.02)
    await mutex.lock(distributed_set.lock_name, lease_seconds=15)

    with pytest.raises(LockTimeout):
        await distributed_set.take_one()

    assert store.items == {}


@pytest.mark.asyncio
async def test_save_failure_is_store_unavailable_and_releases_lock():
    store = YieldingLocalStore(5, name="ports")
    mutex = LocalLeaseMutex()
    distributed_set = _make_set(store=store, mutex=mutex)
    await distributed_set.take_one()
    blob_before = store.items[KEY]

    store.save = AsyncMock(side_effect=StoreError("PutItem error: throttled", key=KEY))  # type: ignore[method-assign]
    with pytest.raises(StoreUnavailable):
        await distributed_set.take_one()

    assert store.items[KEY] == blob_before
    assert mutex.holder(distributed_set.lock_name) is None


@pytest.mark.asyncio
async def test_read_failure_is_store_unavailable_and_releases_lock():
    store = YieldingLocalStore(5, name="ports")
    mutex = LocalLeaseMutex()
    distributed_set = _make_set(store=store, mutex=mutex)
    store._read = AsyncMock(side_effect=StoreError("GetItem error: timeout", key=KEY))  # type: ignore[method-assign]

    with pytest.raises(StoreUnavailable):
        await distributed_set.give_back(10000)

    assert mutex.holder(distributed_set.lock_name) is None


@pytest.mark.asyncio
async def test_corrupt_item_is_format_error():
    store = YieldingLocalStore(5, name="ports")
    store.items[KEY] = encode(BitVector.full(4))
    mutex = LocalLeaseMutex()
    distributed_set = _make_set(store=store, mutex=mutex)

    with pytest.raises(FormatError):
        await distributed_set.take_one()

    assert mutex.holder(distributed_set.lock_name) is None


@pytest.mark.asyncio
async def test_available_counts_free_elements():
    distributed_set = _make_set(length=5)
    assert await distributed_set.available() == 5

    await distributed_set.take_one()
    await distributed_set.take_one()
    assert await distributed_set.available() == 3
