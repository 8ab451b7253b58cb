import asyncio
import logging
from typing import Awaitable, TypeVar

import typer
import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from uniqueport.config import settings
from uniqueport.constants import REPO_ROOT_DIR, ProvisioningStatus
from uniqueport.exceptions import UniquePortException
from uniqueport.provisioning.handler import handle_sns_event
from uniqueport.provisioning.models import SNSEnvelope
from uniqueport.sdk.log import setup_logger
from uniqueport.sets.registry import DistributedSetRegistry

from .console import console, err_console

T = TypeVar("T")

cli_app = typer.Typer(
    help="[bold]uniqueport[/bold]\nAllocate unique ports from a range shared through DynamoDB.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@cli_app.callback()
def cli_callback() -> None:
    """Configure logging before command execution."""
    load_dotenv(REPO_ROOT_DIR / ".env")
    for logger_name in ("botocore", "aiobotocore", "httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
    setup_logger()


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except (UniquePortException, ValidationError) as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@cli_app.command("take")
def take(key: str = typer.Argument(..., help="Key of the set to take a port from.")) -> None:
    """Take the lowest available port from a set."""
    distributed_set = DistributedSetRegistry.from_settings().get(key)
    port = _run(distributed_set.take_one())
    console.print(port)


@cli_app.command("give")
def give(
    key: str = typer.Argument(..., help="Key of the set to return the port to."),
    port: int = typer.Argument(..., help="Port to give back."),
) -> None:
    """Give a port back to a set."""
    distributed_set = DistributedSetRegistry.from_settings().get(key)
    _run(distributed_set.give_back(port))
    console.print(f"[green]Gave back port {port}[/green]")


@cli_app.command("available")
def available(key: str = typer.Argument(..., help="Key of the set.")) -> None:
    """Count the ports that can still be taken from a set."""
    distributed_set = DistributedSetRegistry.from_settings().get(key)
    count = _run(distributed_set.available())
    console.print(count)


@cli_app.command("handle-event")
def handle_event(event: str = typer.Argument(..., help="SNS notification JSON carrying provisioning requests.")) -> None:
    """Handle a provisioning notification and report the outcome to its response URL."""
    try:
        envelope = SNSEnvelope.model_validate_json(event)
    except ValidationError as e:
        err_console.print(f"[red]Invalid event: {e}[/red]")
        raise typer.Exit(code=1)

    responses = _run(handle_sns_event(envelope))
    for response in responses:
        console.print(f"{response.LogicalResourceId}: {response.Status} {response.Reason or ''}".rstrip())
    if any(response.Status == ProvisioningStatus.FAILED for response in responses):
        raise typer.Exit(code=1)


@cli_app.command("serve")
def serve(
    port: int = typer.Option(settings.PORT, "--port", "-p", help="Port to listen on."),
) -> None:
    """Run the HTTP API server."""
    uvicorn.run(
        "uniqueport.api.api_app:create_api_app",
        host="0.0.0.0",
        port=port,
        log_level="info",
        factory=True,
    )
