# newsletter_api/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsletter_api.config import Environment, Settings, settings as default_settings
from newsletter_api.database.connection import DatabaseConnection
from newsletter_api.routes.health_check import router as health_check_router
from newsletter_api.routes.subscriptions import router as subscriptions_router
from newsletter_api.services.email_service import EmailClient, build_email_client
from newsletter_api.telemetry import configure_logging, setup_request_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    email_client: Optional[EmailClient] = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        logger.info(f"Starting Newsletter API ({settings.environment.value})...")
        app.state.database = DatabaseConnection(settings.database)

        try:
            await app.state.database.get_pool()
            logger.info("Database connection pool initialized")
        except Exception as e:
            if settings.environment == Environment.LOCAL:
                # the pool is retried lazily on the first request that needs it
                logger.warning(f"Database connection failed (local mode): {e}")
            else:
                logger.error(f"Failed to initialize database: {e}")
                raise

        # built only once startup can no longer fail
        app.state.email_client = email_client or build_email_client(settings.email_client)

        yield

        logger.info("Shutting down Newsletter API...")
        await app.state.email_client.close()
        await app.state.database.close_pool()

    app = FastAPI(
        title="Newsletter API",
        description="Newsletter subscriptions with email confirmation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_request_logging(app)
    app.include_router(health_check_router)
    app.include_router(subscriptions_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request."},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return app


configure_logging(default_settings.log_level)
app = create_app()
