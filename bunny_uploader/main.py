"""
FastAPI application entry point for the Bunny Uploader sidecar.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .config import get_settings
from .api.routes import router, get_service
from .core.settings_resolver import get_settings_errors


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup / shutdown hooks."""
    log = logging.getLogger(__name__)
    log.info("Bunny Uploader starting up ...")
    missing = get_settings_errors(settings.raw_bunny_config())
    if missing:
        log.warning(
            "Bunny.net settings incomplete, uploads will fail until set: %s",
            ", ".join(m.value for m in missing),
        )
    get_service()
    yield
    log.info("Bunny Uploader shutting down ...")


app = FastAPI(
    title="Bunny Uploader",
    description="Mirrors audio files to Bunny.net storage over HTTP PUT with "
                "FTP/FTPS fallback and returns pull-zone CDN URLs.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


if __name__ == "__main__":
    uvicorn.run(
        "bunny_uploader.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
    )
