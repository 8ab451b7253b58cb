import structlog
import uvicorn

from uniqueport.config import settings

LOG = structlog.stdlib.get_logger()


if __name__ == "__main__":
    port = settings.PORT
    LOG.info("API server starting.", host="0.0.0.0", port=port)
    uvicorn.run(
        "uniqueport.api.api_app:create_api_app",
        host="0.0.0.0",
        port=port,
        log_level="info",
        reload=settings.ENV == "local",
        factory=True,
    )
