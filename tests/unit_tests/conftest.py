import functools
import json
from typing import Callable, Generator

import boto3
import httpx
import pytest
from moto.server import ThreadedMotoServer

from uniqueport.config import settings
from uniqueport.provisioning import handler
from uniqueport.provisioning.models import UniquePortProperties
from uniqueport.sets.distributed_set import DistributedSet
from uniqueport.sets.lock.lease_lock import LeaseLock
from uniqueport.sets.lock.local import LocalLeaseMutex
from uniqueport.sets.models import PortRange
from uniqueport.sets.store.local import LocalSetItemStore

RESPONSE_URL = "https://cloudformation-custom-resource-response.s3.amazonaws.com/arn%3Aaws/stack?Signature=abc"

RESOURCE_PROPERTIES = {
    "ServiceToken": "arn:aws:sns:us-west-1:123456789012:unique-port",
    "DynamoRegion": "us-west-1",
    "DynamoEndpoint": "https://dynamodb.us-west-1.amazonaws.com",
    "DynamoLockTable": "unique-ports-locks",
    "DynamoTable": "unique-ports",
    "Key": "web",
}


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mocked AWS Credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")


@pytest.fixture(scope="module")
def moto_server() -> Generator[str, None, None]:
    # Note: pass `port=0` to get a random free port.
    server = ThreadedMotoServer(port=0)
    server.start()
    host, port = server.get_host_and_port()
    yield f"http://{host}:{port}"
    server.stop()


@pytest.fixture(scope="module")
def dynamodb_test_client(moto_server: str):
    return boto3.client(
        "dynamodb",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name=settings.AWS_REGION,
        endpoint_url=moto_server,
    )


@pytest.fixture(scope="module")
def create_dynamodb_table(dynamodb_test_client):
    def _create(table_name: str, partition_key: str) -> None:
        dynamodb_test_client.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": partition_key, "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": partition_key, "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )

    return _create


class CallbackRecorder:
    """httpx transport handler that records provisioning callbacks and accepts them."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200)

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def provisioning_callbacks(monkeypatch: pytest.MonkeyPatch) -> CallbackRecorder:
    """Route every callback client created by the handler through an in-memory transport."""
    recorder = CallbackRecorder()
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        functools.partial(httpx.AsyncClient, transport=httpx.MockTransport(recorder)),
    )
    return recorder


@pytest.fixture
def local_port_sets(monkeypatch: pytest.MonkeyPatch) -> LocalSetItemStore:
    """Back provisioning requests with an in-process store of three ports starting at 10000."""
    store = LocalSetItemStore(3, name="unique-ports")
    lease_lock = LeaseLock(LocalLeaseMutex(), lease_seconds=15)

    def build(properties: UniquePortProperties) -> DistributedSet:
        return DistributedSet(
            key=properties.Key,
            store=store,
            lease_lock=lease_lock,
            port_range=PortRange(lower=10000, length=3),
            wait_timeout=1,
        )

    monkeypatch.setattr(handler, "build_distributed_set", build)
    return store


@pytest.fixture
def sns_event() -> Callable[..., str]:
    """Build the JSON of an SNS notification carrying one provisioning request."""

    def _make(request_type: str, **overrides) -> str:
        request = {
            "ResourceType": "Custom::UniquePort",
            "RequestType": request_type,
            "RequestId": "req-1",
            "StackId": "arn:aws:cloudformation:us-west-1:123456789012:stack/web/1",
            "LogicalResourceId": "WebPort",
            "ResponseURL": RESPONSE_URL,
            "ResourceProperties": dict(RESOURCE_PROPERTIES),
        }
        request.update(overrides)
        return json.dumps(
            {
                "Records": [
                    {
                        "EventSource": "aws:sns",
                        "Sns": {"Type": "Notification", "Message": json.dumps(request)},
                    }
                ]
            }
        )

    return _make
