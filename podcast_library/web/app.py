"""
FastAPI web application for the podcast library service.

Serves the streaming proxy referenced by pointer files, the admin
maintenance API, and runs the periodic library refresh.

Run with uvicorn's factory mode:

    uvicorn podcast_library.web.app:create_app --factory --port 8080
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from podcast_library import __version__
from podcast_library.argparse_shared import setup_logging
from podcast_library.config import Config, ConfigurationStore
from podcast_library.scheduler import create_scheduler, create_store
from podcast_library.web.admin_routes import router as admin_router
from podcast_library.web.models import HealthResponse
from podcast_library.web.stream_routes import router as stream_router

logger = logging.getLogger(__name__)


def _validate_jwt_config(config: Config) -> None:
    """
    Validate JWT configuration at startup.

    In DEV_MODE, allows running without JWT_SECRET_KEY by using an insecure key.
    Otherwise the admin API stays locked until JWT_SECRET_KEY is set.
    """
    if config.JWT_SECRET_KEY:
        return

    is_dev_mode = os.getenv("DEV_MODE", "").lower() == "true"
    if is_dev_mode:
        logger.warning(
            "JWT_SECRET_KEY not set - using insecure dev key. "
            "DO NOT use in production!"
        )
        config.JWT_SECRET_KEY = "dev-secret-key-insecure-do-not-use-in-prod"
    else:
        logger.warning("JWT_SECRET_KEY not set - admin endpoints will reject all requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the refresh scheduler on startup and stops it on shutdown.
    """
    scheduler = create_scheduler(app.state.config, app.state.store)
    scheduler.start()
    logger.info("Application started")

    yield

    scheduler.shutdown(wait=False)
    logger.info("Application shutdown")


def create_app(
    config: Optional[Config] = None,
    store: Optional[ConfigurationStore] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Service settings; read from the environment if omitted.
        store: Plugin configuration store; a JSON store at
            ``PLUGIN_CONFIG_PATH`` if omitted.

    Returns:
        FastAPI: The configured application.
    """
    config = config or Config()
    setup_logging(config.LOG_LEVEL)
    store = store or create_store(config)

    _validate_jwt_config(config)

    app = FastAPI(
        title="Podcast Library",
        description="Mirrors podcast feeds into a media library and proxies playback",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware (configurable via environment variable)
    allowed_origins = config.WEB_ALLOWED_ORIGINS.split(",") if config.WEB_ALLOWED_ORIGINS != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store config and configuration store in app state for access in routes
    app.state.config = config
    app.state.store = store

    app.include_router(stream_router)
    app.include_router(admin_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse()

    return app
