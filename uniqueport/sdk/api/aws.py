from enum import StrEnum
from typing import Any

import aioboto3
import structlog
from botocore.exceptions import ClientError
from types_boto3_dynamodb.client import DynamoDBClient

from uniqueport.config import settings

LOG = structlog.get_logger()


class AWSClientType(StrEnum):
    DYNAMODB = "dynamodb"


class AsyncAWSClient:
    def __init__(
        self,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self.region_name = region_name or settings.AWS_REGION
        self._endpoint_url = endpoint_url
        self.session = aioboto3.Session(
            aws_access_key_id=aws_access_key_id or settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=aws_secret_access_key or settings.AWS_SECRET_ACCESS_KEY,
        )

    def _dynamodb_client(self) -> DynamoDBClient:
        return self.session.client(
            AWSClientType.DYNAMODB, region_name=self.region_name, endpoint_url=self._endpoint_url
        )

    async def get_item(
        self,
        table_name: str,
        key: dict[str, Any],
        consistent_read: bool = True,
    ) -> dict[str, Any] | None:
        # https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/get_item.html
        async with self._dynamodb_client() as client:
            response = await client.get_item(TableName=table_name, Key=key, ConsistentRead=consistent_read)
            item = response.get("Item")
            return item or None

    async def put_item(
        self,
        table_name: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> None:
        # https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/put_item.html
        extra_args: dict[str, Any] = {}
        if condition_expression:
            extra_args["ConditionExpression"] = condition_expression
        if expression_attribute_names:
            extra_args["ExpressionAttributeNames"] = expression_attribute_names
        if expression_attribute_values:
            extra_args["ExpressionAttributeValues"] = expression_attribute_values
        async with self._dynamodb_client() as client:
            await client.put_item(TableName=table_name, Item=item, **extra_args)

    async def delete_item(
        self,
        table_name: str,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> None:
        # https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/delete_item.html
        extra_args: dict[str, Any] = {}
        if condition_expression:
            extra_args["ConditionExpression"] = condition_expression
        if expression_attribute_names:
            extra_args["ExpressionAttributeNames"] = expression_attribute_names
        if expression_attribute_values:
            extra_args["ExpressionAttributeValues"] = expression_attribute_values
        async with self._dynamodb_client() as client:
            await client.delete_item(TableName=table_name, Key=key, **extra_args)


def client_error_code(e: ClientError) -> str | None:
    return e.response.get("Error", {}).get("Code")


def is_conditional_check_failure(e: ClientError) -> bool:
    return client_error_code(e) == "ConditionalCheckFailedException"
