import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from colorfeed import __version__
from colorfeed.api.v1 import colors
from colorfeed.core.config import settings
from colorfeed.resolver.pipeline import ColorPipeline
from colorfeed.resolver.refresher import CacheRefresher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    pipeline = ColorPipeline.from_settings(settings)
    app.state.pipeline = pipeline

    refresher = None
    if settings.REFRESH_ENABLED:
        refresher = CacheRefresher(
            pipeline,
            pipeline.default_request(
                max_images=settings.REFRESH_MAX_IMAGES,
                deadline_seconds=settings.REFRESH_DEADLINE_SECONDS
            ),
            interval=settings.REFRESH_INTERVAL_SECONDS
        )
        refresher.start()
        logger.info("Background cache refresh enabled")

    try:
        yield
    finally:
        if refresher is not None:
            await refresher.stop()
        await pipeline.aclose()


app = FastAPI(
    title="colorfeed API",
    description="Representative colors of recent Wikimedia Commons uploads",
    version=__version__,
    lifespan=lifespan
)

app.include_router(colors.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "status": "ok",
        "message": "colorfeed API",
        "version": __version__
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}
