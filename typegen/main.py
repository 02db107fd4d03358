import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from typegen import __version__
from typegen.api.routes import router as api_router
from typegen.core.config import settings
from typegen.core.logging import configure_logging

configure_logging(settings.log_level)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    log.info("Starting config API on %s:%d", settings.api_host, settings.api_port)
    yield
    log.info("Shutting down config API...")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/v1")


def run() -> None:
    uvicorn.run("typegen.main:app", host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
