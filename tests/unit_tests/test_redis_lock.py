"""Tests for RedisLeaseMutex and RedisClientFactory.

All tests use a mock Redis client, no real Redis instance required.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockNotOwnedError

from uniqueport.exceptions import LockTimeout
from uniqueport.sdk.redis.factory import RedisClientFactory
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.lock.redis import RedisLeaseMutex


def _make_mock_redis() -> tuple[MagicMock, MagicMock]:
    """Return a mock redis.asyncio.Redis client and the lock object it hands out."""
    redis_lock = MagicMock()
    redis_lock.acquire = AsyncMock(return_value=True)
    redis_lock.release = AsyncMock()
    redis_lock.do_release = AsyncMock()
    redis = MagicMock()
    redis.lock = MagicMock(return_value=redis_lock)
    return redis, redis_lock


async def _stall(token: str) -> bool:
    await asyncio.sleep(60)
    return True


@pytest.mark.asyncio
async def test_lock_uses_lease_as_redis_timeout():
    redis, redis_lock = _make_mock_redis()
    mutex = RedisLeaseMutex(redis, key_prefix="uniqueport:lock:", retry_interval=0.05)

    handle = await mutex.lock("ports-web", lease_seconds=15)

    redis.lock.assert_called_once_with(
        "uniqueport:lock:ports-web",
        timeout=15,
        sleep=0.05,
        blocking=True,
        blocking_timeout=None,
    )
    redis_lock.acquire.assert_awaited_once_with(token=handle.token)
    assert handle.name == "ports-web"
    assert handle.backend_lock is redis_lock


@pytest.mark.asyncio
async def test_unlock_releases_the_redis_lock():
    redis, redis_lock = _make_mock_redis()
    mutex = RedisLeaseMutex(redis, key_prefix="p:")

    handle = await mutex.lock("ports-web", lease_seconds=15)
    await mutex.unlock(handle)

    redis_lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_release_of_expired_redis_lease_is_swallowed():
    redis, redis_lock = _make_mock_redis()
    redis_lock.release.side_effect = LockNotOwnedError("Cannot release a lock that's no longer owned")
    lease_lock = LeaseLock(RedisLeaseMutex(redis, key_prefix="p:"), lease_seconds=15)

    handle = await lease_lock.acquire("ports-web", wait_timeout=1)
    await lease_lock.release(handle)

    redis_lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_timed_out_acquire_removes_key_set_under_its_token():
    redis, redis_lock = _make_mock_redis()

    # the SET NX landed but the reply never arrives
    redis_lock.acquire = AsyncMock(side_effect=_stall)
    lease_lock = LeaseLock(RedisLeaseMutex(redis, key_prefix="p:"), lease_seconds=15)

    with pytest.raises(LockTimeout):
        await lease_lock.acquire("ports-web", wait_timeout=0.05)

    token = redis_lock.acquire.await_args.kwargs["token"]
    redis_lock.do_release.assert_awaited_once_with(token)
    redis_lock.release.assert_not_awaited()


@pytest.mark.asyncio
async def test_timed_out_acquire_ignores_key_owned_by_someone_else():
    redis, redis_lock = _make_mock_redis()
    redis_lock.acquire = AsyncMock(side_effect=_stall)
    redis_lock.do_release.side_effect = LockNotOwnedError("Cannot release a lock that's no longer owned")
    lease_lock = LeaseLock(RedisLeaseMutex(redis, key_prefix="p:"), lease_seconds=15)

    with pytest.raises(LockTimeout):
        await lease_lock.acquire("ports-web", wait_timeout=0.05)

    redis_lock.do_release.assert_awaited_once()


def test_factory_default_is_none():
    RedisClientFactory.set_client(None)
    assert RedisClientFactory.get_client() is None


def test_factory_set_and_get():
    mock_client = MagicMock()
    RedisClientFactory.set_client(mock_client)
    assert RedisClientFactory.get_client() is mock_client
    assert RedisClientFactory.get_or_create_client() is mock_client

    # Cleanup
    RedisClientFactory.set_client(None)
