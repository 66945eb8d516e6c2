"""
RestCrud Backend Application

FastAPI application entrypoint with async lifespan management.
Creates the schema on startup and disposes the engine on shutdown.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from restcrud.api.v1.things import router as things_router
from restcrud.core.config import settings
from restcrud.core.database import dispose_engine, init_models
from restcrud.core.logging import setup_logging

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Creates missing tables (blocks startup on failure)

    Shutdown:
        - Disposes the engine and its connection pool
    """
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    await init_models()

    yield  # Application runs here

    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    await dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(things_router, prefix="/api/v1/things", tags=["Things"])


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns:
        Static health status; no live database probe.
    """
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "environment": os.getenv("ENVIRONMENT", "unknown"),
    }
