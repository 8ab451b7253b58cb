from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from uniqueport.constants import SET_ITEM_KEY_ATTR, SET_ITEM_MEMBERS_ATTR
from uniqueport.exceptions import FormatError, StoreError
from uniqueport.sdk.api.aws import AsyncAWSClient
from uniqueport.sets.store.base import BaseSetItemStore

LOG = structlog.get_logger()


class DynamoDBSetItemStore(BaseSetItemStore):
    """One DynamoDB item per set: ``Key`` (S) is the partition key, ``Members`` (B) the encoded vector."""

    def __init__(self, aws_client: AsyncAWSClient, table_name: str, length: int) -> None:
        super().__init__(length)
        self._aws_client = aws_client
        self._table_name = table_name

    @property
    def name(self) -> str:
        return self._table_name

    async def _read(self, key: str) -> bytes | None:
        try:
            item = await self._aws_client.get_item(
                self._table_name,
                key={SET_ITEM_KEY_ATTR: {"S": key}},
                consistent_read=True,
            )
        except (BotoCoreError, ClientError) as e:
            LOG.warning("DynamoDB GetItem failed", table_name=self._table_name, key=key, exc_info=True)
            raise StoreError(f"GetItem error: {e}", key=key) from e

        if item is None:
            return None
        return _members_blob(item)

    async def _write(self, key: str, blob: bytes) -> None:
        try:
            await self._aws_client.put_item(
                self._table_name,
                item={
                    SET_ITEM_KEY_ATTR: {"S": key},
                    SET_ITEM_MEMBERS_ATTR: {"B": blob},
                },
            )
        except (BotoCoreError, ClientError) as e:
            LOG.warning("DynamoDB PutItem failed", table_name=self._table_name, key=key, exc_info=True)
            raise StoreError(f"PutItem error: {e}", key=key) from e


def _members_blob(item: dict[str, Any]) -> bytes:
    key = item.get(SET_ITEM_KEY_ATTR)
    if key is None:
        raise FormatError("item doesn't have Key")
    if "S" not in key:
        raise FormatError("Key isn't a String")

    members = item.get(SET_ITEM_MEMBERS_ATTR)
    if members is None:
        raise FormatError("item doesn't have Members")
    if "B" not in members:
        raise FormatError("Members isn't a binary blob")
    return bytes(members["B"])
