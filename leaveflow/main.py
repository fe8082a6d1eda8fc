"""leaveflow — FastAPI Application Factory.

The leave engine is exposed as an async service API (see
``leaveflow.hr.service.HrActionService``); this app hosts the RFC 7807 error
mapping and the health probe for deployments that mount their own routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import leaveflow
from leaveflow.common.exceptions import register_exception_handlers
from leaveflow.config import settings
from leaveflow.database import engine
from leaveflow.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    configure_logging(settings.LOG_LEVEL)
    logger.info("leaveflow %s starting (%s)", leaveflow.__version__, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("leaveflow stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="leaveflow",
        description="Multi-tenant leave accounting and HR action workflow",
        version=leaveflow.__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": leaveflow.__version__,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
