"""
Vitalis Sync FastAPI application.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.core.config import get_settings
from app.core.database import close_db, init_db
from app.core.error_handlers import register_exception_handlers
from app.core.job_context import setup_sync_logging
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.core.tasks import get_task_queue
from app.services.sync.scheduler import sync_scheduler

# Configure logging
configure_logging()
setup_sync_logging()
logger = logging.getLogger(__name__)

# Get settings
settings = get_settings()


async def _startup_tasks() -> None:
    """Run all startup tasks."""
    # Skip database setup and workers in test environment
    if os.getenv("PYTEST_CURRENT_TEST"):
        logger.info("Skipping startup tasks in test environment")
        return

    if settings.database.create_tables:
        logger.info("Creating database tables...")
        await init_db()

    logger.info("Starting background workers...")
    await get_task_queue().start()

    logger.info("Starting scheduler...")
    sync_scheduler.schedule_stale_sweep()
    sync_scheduler.start()

    logger.info("Application startup complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app.name} v{settings.app.version}")

    try:
        await _startup_tasks()
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        if e.__cause__:
            logger.error(f"Caused by: {e.__cause__}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app.name}")

    try:
        if not os.getenv("PYTEST_CURRENT_TEST"):
            logger.info("Stopping scheduler...")
            sync_scheduler.shutdown()

            logger.info("Stopping background workers...")
            await get_task_queue().stop()

        logger.info("Closing database connections...")
        await close_db()

        logger.info("Application shutdown complete")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Create FastAPI app
app = FastAPI(
    title=settings.app.name,
    version=settings.app.version,
    description="Synchronization of SOC occupational health data",
    docs_url="/docs" if settings.app.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.app.debug else None,
    openapi_url="/openapi.json" if settings.app.debug else None,
    lifespan=lifespan,
)

# Register exception handlers
register_exception_handlers(app)

# Add middleware (order matters - last added is first to process)
app.add_middleware(RequestContextMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_credentials=settings.cors.credentials,
    allow_methods=settings.cors.methods,
    allow_headers=settings.cors.headers,
)

# Include API router
app.include_router(api_router, prefix="/api")


# Health check endpoint (outside of API prefix for monitoring)
@app.get("/health", include_in_schema=False)
async def health_check() -> Dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy"}


# Version endpoint
@app.get("/version", include_in_schema=False)
async def version_info() -> Dict[str, Any]:
    """Get application version information."""
    return {
        "name": settings.app.name,
        "version": settings.app.version,
        "environment": settings.app.environment,
        "debug": settings.app.debug,
    }
