import structlog
from fastapi import APIRouter, Depends, Request, status

from uniqueport.api.schemas import GiveBackPortRequest, SetStatusResponse, TakePortResponse
from uniqueport.provisioning.handler import handle_sns_event
from uniqueport.provisioning.models import ProvisioningResponse, SNSEnvelope
from uniqueport.sets.registry import DistributedSetRegistry

LOG = structlog.get_logger()

base_router = APIRouter()


def get_registry(request: Request) -> DistributedSetRegistry:
    return request.app.state.set_registry


@base_router.post(
    "/sets/{key}/take",
    tags=["Sets"],
    summary="Take a port",
    description="Allocate the lowest available port of the set. The set is created on first use.",
)
async def take_port(
    key: str,
    registry: DistributedSetRegistry = Depends(get_registry),
) -> TakePortResponse:
    port = await registry.get(key).take_one()
    return TakePortResponse(key=key, port=port)


@base_router.post(
    "/sets/{key}/give",
    tags=["Sets"],
    summary="Give back a port",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def give_back_port(
    key: str,
    data: GiveBackPortRequest,
    registry: DistributedSetRegistry = Depends(get_registry),
) -> None:
    await registry.get(key).give_back(data.port)


@base_router.get("/sets/{key}", tags=["Sets"], summary="Count available ports")
async def get_set_status(
    key: str,
    registry: DistributedSetRegistry = Depends(get_registry),
) -> SetStatusResponse:
    distributed_set = registry.get(key)
    available = await distributed_set.available()
    return SetStatusResponse(
        key=key,
        lower=distributed_set.port_range.lower,
        upper=distributed_set.port_range.upper,
        available=available,
    )


@base_router.post(
    "/provisioning/events",
    tags=["Provisioning"],
    summary="Handle a provisioning notification",
    description="Accepts an SNS notification carrying provisioning requests and reports each outcome to its response URL.",
)
async def provisioning_events(envelope: SNSEnvelope) -> list[ProvisioningResponse]:
    return await handle_sns_event(envelope)
