"""FastAPI application for the billing back office."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from waterbill.api.auth import router as auth_router
from waterbill.api.billing import router as billing_router
from waterbill.api.payments import router as payments_router
from waterbill.api.settings import router as settings_router
from waterbill.config import get_settings
from waterbill.models import Base
from waterbill.services import engine
from waterbill.services.errors import AppError, error_response

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.api_title,
        description="Water billing: readings, bills, payments and magic links",
        version=settings.api_version,
        lifespan=lifespan,
    )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
        return JSONResponse(status_code=exc.http_status, content=error_response(exc))

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint for monitoring."""
        return {"status": "ok"}

    app.include_router(billing_router)
    app.include_router(payments_router)
    app.include_router(auth_router)
    app.include_router(settings_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
