import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable

import structlog
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from uniqueport.api.routes import base_router
from uniqueport.config import settings
from uniqueport.exceptions import FormatError, UniquePortHTTPException
from uniqueport.sdk.core import port_context
from uniqueport.sdk.core.port_context import PortContext
from uniqueport.sdk.redis.factory import RedisClientFactory
from uniqueport.sets.registry import DistributedSetRegistry

LOG = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """Lifespan context manager for FastAPI app startup and shutdown."""
    if getattr(app.state, "set_registry", None) is None:
        app.state.set_registry = DistributedSetRegistry.from_settings()
    LOG.info(
        "Server started",
        store_backend=settings.STORE_BACKEND,
        lock_backend=settings.LOCK_BACKEND,
        lower=settings.PORT_LOWER_BOUND,
        length=settings.PORT_RANGE_LENGTH,
    )
    yield
    redis_client = RedisClientFactory.get_client()
    if redis_client is not None:
        await redis_client.aclose()
        RedisClientFactory.set_client(None)
    LOG.info("Server shutting down")


def create_api_app(set_registry: DistributedSetRegistry | None = None) -> FastAPI:
    """
    Build the API server. Without a registry, one is built from settings at startup.
    """
    fastapi_app = FastAPI(title="uniqueport", lifespan=lifespan)
    fastapi_app.state.set_registry = set_registry

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(base_router, prefix="/v1")

    @fastapi_app.get("/heartbeat", include_in_schema=False)
    async def heartbeat() -> Response:
        return Response(content="Server is running.", status_code=200)

    @fastapi_app.exception_handler(UniquePortHTTPException)
    async def handle_uniqueport_http_exception(request: Request, exc: UniquePortHTTPException) -> JSONResponse:
        if isinstance(exc, FormatError):
            LOG.error("Stored set is unreadable", exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @fastapi_app.exception_handler(Exception)
    async def unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        LOG.exception("Unexpected error in api server.", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": f"Unexpected error: {exc}"})

    @fastapi_app.middleware("http")
    async def request_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        port_context.set(PortContext(request_id=request.headers.get("x-request-id") or str(uuid.uuid4())))
        try:
            return await call_next(request)
        finally:
            port_context.reset()

    return fastapi_app
