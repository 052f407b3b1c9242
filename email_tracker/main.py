from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import structlog
import time

from email_tracker.core.config import Settings, settings as default_settings
from email_tracker.core.database import Database
from email_tracker.middleware.rate_limit import build_rate_limit_middleware
from email_tracker.api import emails, stats, tracking

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events"""
    settings = app.state.settings
    database = Database.from_settings(settings)
    if settings.create_schema:
        await database.create_schema()
    app.state.database = database

    logger.info("application_startup", app_name=settings.app_name)
    yield

    await database.dispose()
    logger.info("application_shutdown")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing input is a 400 rather than FastAPI's default 422"""
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": "Invalid request", "errors": exc.errors()})
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    if settings.rate_limit_enabled:
        app.middleware("http")(build_rate_limit_middleware(settings))

    # Middleware for logging requests
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", method=request.method, path=request.url.path, error=str(e))
            raise

        duration = time.time() - start_time
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2)
        )

        return response

    # Include routers
    app.include_router(tracking.router)
    app.include_router(emails.router)
    app.include_router(stats.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok", "app": settings.app_name}

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Email Tracker API",
            "endpoints": {
                "health": "/health",
                "tracking_pixel": "/t/{emailId}.png",
                "tracked_link": "/c/{linkId}",
                "emails": "/api/emails",
                "links": "/api/links",
                "stats": "/api/stats",
                "docs": "/docs"
            }
        }

    return app


app = create_app()
