"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .config import Settings
from .logging_config import setup_logging
from .proxy import SrtProxy
from .routes import srt
from .storage.cache import CacheStorage
from .storage.r2 import ObjectStore, R2Client

logger = logging.getLogger(__name__)


def build_bucket(settings: Settings) -> R2Client:
    """Create the R2 client described by ``settings``."""
    return R2Client(
        bucket=settings.R2_BUCKET,
        endpoint_url=settings.R2_ENDPOINT_URL,
        access_key_id=settings.R2_ACCESS_KEY_ID,
        secret_access_key=settings.R2_SECRET_ACCESS_KEY,
    )


def create_app(
    settings: Optional[Settings] = None,
    bucket: Optional[ObjectStore] = None,
    caches: Optional[CacheStorage] = None,
) -> FastAPI:
    """Build the proxy application.

    When both ``bucket`` and ``caches`` are given the proxy is ready
    immediately. Otherwise the missing collaborators are built from
    ``settings`` during startup.

    Args:
        settings: Configuration, read from the environment when omitted
        bucket: Object store to serve from
        caches: Cache service to use

    Returns:
        FastAPI application
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.proxy is None:
            setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
            app.state.proxy = SrtProxy(
                settings=settings,
                bucket=bucket if bucket is not None else build_bucket(settings),
                caches=caches if caches is not None else CacheStorage.on_disk(settings.CACHE_DIR),
            )

        mode = "dev" if settings.IS_DEV else "production"
        logger.info(f"DeepSRT proxy {__version__} ready ({mode} cache, max-age {settings.CACHE_MAX_AGE_SECONDS}s)")
        if not settings.API_KEY:
            logger.warning("DEEPSRT_API_KEY not set; purge requests will be rejected")

        yield

        logger.info("DeepSRT proxy shutting down")

    app = FastAPI(
        title="DeepSRT Proxy",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.proxy = None
    if bucket is not None and caches is not None:
        app.state.proxy = SrtProxy(settings=settings, bucket=bucket, caches=caches)

    app.include_router(srt.router)
    return app


app = create_app()


def main() -> None:
    """Entry point for running the service directly."""
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        "deepsrt_proxy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
    )


if __name__ == "__main__":
    main()
