"""
Main FastAPI application for the invest platform backend.
Configures the API server with routes, middleware and error handlers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from invest_platform.core import database
from invest_platform.core.config import settings
from invest_platform.core.database import DatabaseManager, init_database, close_database
from invest_platform.core.exceptions import AuthorizationError, InvestPlatformException
from invest_platform.core.logging import setup_logging
from invest_platform.api.middleware import add_middleware
from invest_platform.api.routes import daily_earnings
from invest_platform.api.schemas.common import (
    HealthCheckResponse,
    SuccessResponse,
    create_error_response,
    create_success_response,
)
from invest_platform.scheduler.earnings_scheduler import (
    get_earnings_scheduler,
    shutdown_earnings_scheduler,
)


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting invest platform API server")

    if database.async_session_maker is None:
        await init_database()

    if settings.scheduler_enabled:
        try:
            scheduler = await get_earnings_scheduler()
            await scheduler.start()
            logger.info("Earnings scheduler started")
        except Exception as e:
            logger.error("Failed to start earnings scheduler", error=str(e))

    yield

    logger.info("Shutting down invest platform API server")

    try:
        await shutdown_earnings_scheduler()
    except Exception as e:
        logger.error("Error stopping earnings scheduler", error=str(e))

    await close_database()


def register_exception_handlers(app: FastAPI) -> None:
    """Map platform exceptions to JSON error bodies."""

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(request: Request, exc: AuthorizationError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=create_error_response(exc.message).model_dump(exclude_none=True),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(InvestPlatformException)
    async def platform_error_handler(request: Request, exc: InvestPlatformException):
        logger.error(
            "Request failed with platform error",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
            details=exc.details
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(exc.message, exc.code, exc.details).model_dump(exclude_none=True),
        )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    setup_logging()

    app = FastAPI(
        title="Invest Platform API",
        description="""
        Backend API for the investment platform.

        ## Daily earnings

        * `POST /api/daily-earnings` accrues today's plan earnings for every
          active profile. Requires `Authorization: Bearer <CRON_SECRET>`.
          Re-running on the same UTC day pays nobody twice.
        * `GET /api/daily-earnings` is a side-effect free liveness check.
        * `GET /api/daily-earnings/summary` and `/runs` report recent activity.

        ## Error Handling

        Errors are returned as JSON `{error, code, details}`.
        """,
        version=settings.app_version,
        lifespan=lifespan,
    )

    add_middleware(app)
    register_exception_handlers(app)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
        description="Check API server health and database connectivity"
    )
    async def health_check():
        if await DatabaseManager.health_check():
            return HealthCheckResponse(version=settings.app_version)

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthCheckResponse(
                status="unhealthy",
                version=settings.app_version,
                services={"database": "unhealthy", "api": "healthy"}
            ).model_dump(mode="json")
        )

    @app.get(
        "/",
        response_model=SuccessResponse,
        tags=["System"],
        summary="API Information"
    )
    async def root():
        return create_success_response(
            data={
                "version": settings.app_version,
                "environment": settings.environment,
                "docs_url": "/docs",
            },
            message=f"Invest Platform API v{settings.app_version}"
        )

    app.include_router(
        daily_earnings.router,
        prefix=f"{settings.api_prefix}/daily-earnings",
        tags=["Daily Earnings"]
    )

    logger.info("FastAPI application created successfully")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "invest_platform.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
