from uniqueport.config import settings
from uniqueport.constants import LockBackend, StoreBackend
from uniqueport.sdk.api.aws import AsyncAWSClient
from uniqueport.sdk.redis.factory import RedisClientFactory
from uniqueport.sets.distributed_set import DistributedSet
from uniqueport.sets.lock.base import BaseLeaseMutex
from uniqueport.sets.lock.dynamodb import DynamoDBLeaseMutex
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.lock.local import LocalLeaseMutex
from uniqueport.sets.lock.redis import RedisLeaseMutex
from uniqueport.sets.models import PortRange
from uniqueport.sets.store.base import BaseSetItemStore
from uniqueport.sets.store.dynamodb import DynamoDBSetItemStore
from uniqueport.sets.store.local import LocalSetItemStore


def default_port_range() -> PortRange:
    return PortRange(lower=settings.PORT_LOWER_BOUND, length=settings.PORT_RANGE_LENGTH)


def create_store(
    backend: StoreBackend | None = None,
    aws_client: AsyncAWSClient | None = None,
    table_name: str | None = None,
    length: int | None = None,
) -> BaseSetItemStore:
    backend = backend or settings.STORE_BACKEND
    length = length or settings.PORT_RANGE_LENGTH
    if backend == StoreBackend.LOCAL:
        return LocalSetItemStore(length)
    return DynamoDBSetItemStore(
        aws_client or AsyncAWSClient(endpoint_url=settings.DYNAMODB_ENDPOINT_URL),
        table_name or settings.PORTS_TABLE,
        length,
    )


def create_mutex(
    backend: LockBackend | None = None,
    aws_client: AsyncAWSClient | None = None,
    table_name: str | None = None,
) -> BaseLeaseMutex:
    backend = backend or settings.LOCK_BACKEND
    if backend == LockBackend.LOCAL:
        return LocalLeaseMutex(retry_interval=settings.LOCK_RETRY_INTERVAL_SECONDS)
    if backend == LockBackend.REDIS:
        return RedisLeaseMutex(
            RedisClientFactory.get_or_create_client(),
            key_prefix=settings.REDIS_LOCK_PREFIX,
            retry_interval=settings.LOCK_RETRY_INTERVAL_SECONDS,
        )
    return DynamoDBLeaseMutex(
        aws_client or AsyncAWSClient(endpoint_url=settings.DYNAMODB_ENDPOINT_URL),
        table_name or settings.LOCK_TABLE,
        retry_interval=settings.LOCK_RETRY_INTERVAL_SECONDS,
    )


def create_distributed_set(
    key: str,
    store: BaseSetItemStore | None = None,
    mutex: BaseLeaseMutex | None = None,
    port_range: PortRange | None = None,
    wait_timeout: float | None = None,
) -> DistributedSet:
    port_range = port_range or default_port_range()
    return DistributedSet(
        key=key,
        store=store or create_store(length=port_range.length),
        lease_lock=LeaseLock(mutex or create_mutex(), lease_seconds=settings.LOCK_LEASE_SECONDS),
        port_range=port_range,
        wait_timeout=settings.LOCK_WAIT_TIMEOUT_SECONDS if wait_timeout is None else wait_timeout,
    )
