from urllib.parse import urlsplit

import httpx
import structlog

from uniqueport.config import settings
from uniqueport.exceptions import CallbackFailed, InvalidResponseURL
from uniqueport.provisioning.models import ProvisioningResponse

LOG = structlog.get_logger()


async def send_response(
    response_url: str,
    response: ProvisioningResponse,
    http_client: httpx.AsyncClient | None = None,
) -> None:
    """PUT the outcome to the pre-signed response URL. Sent once, never retried."""
    parsed = urlsplit(response_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidResponseURL(response_url)

    body = response.model_dump_json(exclude_none=True).encode()
    LOG.info(
        "Sending provisioning response",
        status=response.Status,
        physical_resource_id=response.PhysicalResourceId,
        reason=response.Reason,
    )
    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=settings.CALLBACK_TIMEOUT_SECONDS) as client:
                res = await client.put(response_url, content=body)
        else:
            res = await http_client.put(response_url, content=body)
    except httpx.HTTPError as e:
        LOG.exception("Failed to send provisioning response", response_url=parsed.netloc)
        raise CallbackFailed(parsed.netloc, str(e)) from e

    if res.is_success:
        LOG.info("Provisioning response accepted", status_code=res.status_code)
    else:
        LOG.warning("Provisioning response rejected", status_code=res.status_code, body=res.text)
