"""Provisioning webhook: turns resource lifecycle events into set operations.

``Create`` takes a port, ``Delete`` gives it back, ``Update`` is refused. The
outcome of every request is reported to the request's response URL, whether the
operation succeeded or not.
"""

from typing import Callable

import httpx
import structlog

from uniqueport.config import settings
from uniqueport.constants import PORT_OUTPUT_NAME, ProvisioningRequestType, ProvisioningStatus
from uniqueport.exceptions import (
    MissingResourceProperty,
    UniquePortException,
    UnsupportedRequestType,
    UnsupportedResourceType,
    UpdateNotSupported,
)
from uniqueport.provisioning.callback import send_response
from uniqueport.provisioning.models import (
    ProvisioningRequest,
    ProvisioningResponse,
    SNSEnvelope,
    UniquePortProperties,
)
from uniqueport.sdk.api.aws import AsyncAWSClient
from uniqueport.sdk.core import port_context
from uniqueport.sets.distributed_set import DistributedSet
from uniqueport.sets.factory import create_distributed_set, default_port_range
from uniqueport.sets.lock.dynamodb import DynamoDBLeaseMutex
from uniqueport.sets.store.dynamodb import DynamoDBSetItemStore

LOG = structlog.get_logger()

SetBuilder = Callable[[UniquePortProperties], DistributedSet]


def build_distributed_set(properties: UniquePortProperties) -> DistributedSet:
    """Both the ports table and the lock table live in the DynamoDB named by the resource properties."""
    aws_client = AsyncAWSClient(region_name=properties.DynamoRegion, endpoint_url=properties.DynamoEndpoint)
    port_range = default_port_range()
    return create_distributed_set(
        properties.Key,
        store=DynamoDBSetItemStore(aws_client, properties.DynamoTable, port_range.length),
        mutex=DynamoDBLeaseMutex(
            aws_client,
            properties.DynamoLockTable,
            retry_interval=settings.LOCK_RETRY_INTERVAL_SECONDS,
        ),
        port_range=port_range,
    )


def parse_port(physical_resource_id: str) -> int | None:
    """The port is the last dash-separated segment of an id built as ``<key>-<port>``."""
    candidate = physical_resource_id.split("-")[-1]
    if not candidate.isdecimal():
        return None
    return int(candidate)


async def handle_unique_port(
    request: ProvisioningRequest,
    set_builder: SetBuilder | None = None,
) -> tuple[str, dict[str, str] | None]:
    """Run the set operation for a request.

    Returns:
        The physical resource id and the output data to report.
    """
    properties = UniquePortProperties.model_validate(request.ResourceProperties)
    missing = properties.first_missing()
    if missing:
        raise MissingResourceProperty(missing)

    context = port_context.ensure_context()
    context.set_key = properties.Key

    distributed_set = (set_builder or build_distributed_set)(properties)

    if request.RequestType == ProvisioningRequestType.CREATE:
        LOG.info("Getting unique port")
        port = await distributed_set.take_one()
        return f"{properties.Key}-{port}", {PORT_OUTPUT_NAME: str(port)}

    if request.RequestType == ProvisioningRequestType.UPDATE:
        LOG.info("Updating unique port")
        raise UpdateNotSupported()

    if request.RequestType == ProvisioningRequestType.DELETE:
        LOG.info("Deleting unique port")
        port = parse_port(request.PhysicalResourceId)
        LOG.info("Parsed port from resource id", port=port, physical_resource_id=request.PhysicalResourceId)
        if port is None:
            return request.PhysicalResourceId, None
        await distributed_set.give_back(port)
        return request.PhysicalResourceId, None

    raise UnsupportedRequestType(request.RequestType)


async def handle_request(
    request: ProvisioningRequest,
    set_builder: SetBuilder | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ProvisioningResponse:
    context = port_context.ensure_context()
    context.request_id = request.RequestId or context.request_id
    context.stack_id = request.StackId
    context.logical_resource_id = request.LogicalResourceId

    LOG.info("Got provisioning request", resource_type=request.ResourceType, request_type=request.RequestType)

    physical_resource_id = request.PhysicalResourceId
    outputs: dict[str, str] | None = None
    error: Exception | None = None

    try:
        if request.ResourceType != settings.RESOURCE_TYPE:
            if request.RequestType != ProvisioningRequestType.DELETE:
                raise UnsupportedResourceType(request.ResourceType)
            LOG.info("Treating delete of unknown resource type as a no-op", resource_type=request.ResourceType)
        else:
            physical_resource_id, outputs = await handle_unique_port(request, set_builder)
    except UniquePortException as e:
        LOG.warning("Provisioning request failed", reason=str(e))
        error = e
        if isinstance(e, UnsupportedRequestType):
            physical_resource_id = ""
    except Exception as e:
        LOG.exception("Unexpected error handling provisioning request")
        error = e

    response = ProvisioningResponse(
        RequestId=request.RequestId,
        StackId=request.StackId,
        LogicalResourceId=request.LogicalResourceId,
        PhysicalResourceId=physical_resource_id,
        Data=outputs,
    )
    if error is not None:
        response.Status = ProvisioningStatus.FAILED
        response.Reason = str(error)

    await send_response(request.ResponseURL, response, http_client)
    return response


async def handle_sns_event(
    envelope: SNSEnvelope,
    set_builder: SetBuilder | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> list[ProvisioningResponse]:
    """Handle every provisioning request carried by an SNS notification, in order."""
    responses = []
    for record in envelope.Records:
        request = ProvisioningRequest.model_validate_json(record.Sns.Message)
        responses.append(await handle_request(request, set_builder, http_client))
    return responses
