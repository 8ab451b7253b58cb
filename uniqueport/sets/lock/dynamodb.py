import asyncio
import time
import uuid

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from uniqueport.constants import LOCK_EXPIRES_ATTR, LOCK_NAME_ATTR, LOCK_TOKEN_ATTR
from uniqueport.exceptions import StoreError
from uniqueport.sdk.api.aws import AsyncAWSClient, client_error_code, is_conditional_check_failure
from uniqueport.sets.lock.base import BaseLeaseMutex, LockHandle

LOG = structlog.get_logger()

# Retrying cannot fix these, the lock table or the credentials are wrong.
NON_RETRYABLE_ERROR_CODES = frozenset(
    {
        "ResourceNotFoundException",
        "AccessDeniedException",
        "UnrecognizedClientException",
        "ValidationException",
    }
)


class DynamoDBLeaseMutex(BaseLeaseMutex):
    """Lease mutex backed by a lock table with one row per held name.

    A row is ``Name`` (S, partition key), ``Token`` (S) and ``Expires`` (N, unix
    seconds). Acquiring is a conditional put that only succeeds when no row
    exists or the existing lease has expired. Releasing deletes the row only if
    the token still matches.

    A put that is already on the wire when the caller cancels may still be
    applied. Cancellation therefore waits for the outstanding put to answer and
    deletes the row it may have written before the cancellation propagates.
    """

    def __init__(self, aws_client: AsyncAWSClient, table_name: str, retry_interval: float = 0.1) -> None:
        self._aws_client = aws_client
        self._table_name = table_name
        self._retry_interval = retry_interval

    async def _try_lock(self, name: str, token: str, lease_seconds: float) -> bool:
        now = time.time()
        try:
            await self._aws_client.put_item(
                self._table_name,
                item={
                    LOCK_NAME_ATTR: {"S": name},
                    LOCK_TOKEN_ATTR: {"S": token},
                    LOCK_EXPIRES_ATTR: {"N": repr(now + lease_seconds)},
                },
                condition_expression="attribute_not_exists(#name) OR #expires < :now",
                expression_attribute_names={"#name": LOCK_NAME_ATTR, "#expires": LOCK_EXPIRES_ATTR},
                expression_attribute_values={":now": {"N": repr(now)}},
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            raise
        return True

    async def _delete_if_owned(self, name: str, token: str) -> bool:
        """Delete the row of ``name`` if ``token`` still owns it. Returns False when it did not."""
        try:
            await self._aws_client.delete_item(
                self._table_name,
                key={LOCK_NAME_ATTR: {"S": name}},
                condition_expression="#token = :token",
                expression_attribute_names={"#token": LOCK_TOKEN_ATTR},
                expression_attribute_values={":token": {"S": token}},
            )
        except ClientError as e:
            if is_conditional_check_failure(e):
                return False
            raise
        return True

    async def lock(self, name: str, lease_seconds: float) -> LockHandle:
        token = uuid.uuid4().hex
        while True:
            attempt = asyncio.create_task(self._try_lock(name, token, lease_seconds))
            try:
                acquired = await asyncio.shield(attempt)
            except asyncio.CancelledError:
                await self._discard_attempt(attempt, name, token)
                raise
            except ClientError as e:
                if client_error_code(e) in NON_RETRYABLE_ERROR_CODES:
                    raise StoreError(f"Lock table {self._table_name} unusable: {e}") from e
                LOG.warning("Lock table write failed", lock_name=name, table_name=self._table_name, exc_info=True)
            except BotoCoreError:
                # keep trying until the caller's wait timeout cancels us
                LOG.warning("Lock table write failed", lock_name=name, table_name=self._table_name, exc_info=True)
            else:
                if acquired:
                    return LockHandle(
                        name=name,
                        token=token,
                        lease_seconds=lease_seconds,
                        acquired_at=time.monotonic(),
                    )
            await asyncio.sleep(self._retry_interval)

    async def _discard_attempt(self, attempt: asyncio.Task[bool], name: str, token: str) -> None:
        try:
            acquired = await attempt
        except (BotoCoreError, ClientError):
            # the put may have been applied even though no answer came back
            acquired = True
        if not acquired:
            return

        try:
            removed = await self._delete_if_owned(name, token)
        except (BotoCoreError, ClientError):
            LOG.warning(
                "Failed to remove the lease of a cancelled lock attempt",
                lock_name=name,
                table_name=self._table_name,
                exc_info=True,
            )
            return
        if removed:
            LOG.info("Removed the lease of a cancelled lock attempt", lock_name=name, table_name=self._table_name)

    async def unlock(self, handle: LockHandle) -> None:
        if not await self._delete_if_owned(handle.name, handle.token):
            LOG.warning("Lease no longer held at release", lock_name=handle.name, table_name=self._table_name)
