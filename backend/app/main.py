from contextlib import asynccontextmanager
import asyncio
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import api_router
from app.config import settings
from app.database import check_database_connection
from app.logging_config import setup_logging
from app.exceptions import AppException, error_envelope, to_http_exception
from app.services.metadata_inference import get_inference_provider
from app.services.metadata_service import check_inference_health

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)


HEALTH_CHECK_TIMEOUT_SECONDS = 3.0


async def log_inference_health(app: FastAPI) -> None:
    """Check the inference provider without blocking startup for long."""
    try:
        # Honour dependency overrides so a substituted provider is the one checked
        provider_factory = app.dependency_overrides.get(get_inference_provider, get_inference_provider)
        provider = provider_factory()
        loop = asyncio.get_running_loop()

        try:
            is_healthy = await asyncio.wait_for(
                loop.run_in_executor(None, check_inference_health, provider),
                timeout=HEALTH_CHECK_TIMEOUT_SECONDS
            )
            if is_healthy:
                logger.info(
                    "✅ Inference provider healthy",
                    extra={"provider": type(provider).__name__, "status": "available"}
                )
            else:
                logger.warning(
                    "⚠️  Inference provider unhealthy",
                    extra={"provider": type(provider).__name__, "status": "degraded"}
                )
        except asyncio.TimeoutError:
            logger.warning(
                "⚠️  Inference provider health check timed out",
                extra={
                    "provider": type(provider).__name__,
                    "status": "degraded",
                    "timeout_seconds": HEALTH_CHECK_TIMEOUT_SECONDS
                }
            )
    except Exception as e:
        logger.warning(
            "⚠️  Could not verify inference provider",
            extra={"error": str(e)}
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    Logs the active configuration and checks the database connection and
    the inference provider.
    """
    logger.info(
        "🚀 Application startup",
        extra={
            "environment": settings.environment,
            "inference_provider": "gemini",
            "inference_model": settings.gemini_model,
            "media_store": "cloudinary",
            "cloudinary_cloud_name": settings.cloudinary_cloud_name,
            "thumbnail_fallback_enabled": settings.thumbnail_fallback_enabled,
        }
    )

    logger.info(
        "⏱️  Outbound call timeouts",
        extra={
            "media_upload_timeout_seconds": settings.media_upload_timeout_seconds,
            "frame_fetch_timeout_seconds": settings.frame_fetch_timeout_seconds,
            "inference_timeout_seconds": settings.inference_timeout_seconds,
        }
    )

    if check_database_connection():
        logger.info(
            "✅ Database connection successful",
            extra={"note": "Run 'alembic upgrade head' to apply migrations"}
        )
    else:
        logger.error("❌ Database connection failed")

    await log_inference_health(app)

    yield

    logger.info(
        "👋 Application shutdown",
        extra={"timestamp": datetime.now(timezone.utc).isoformat()}
    )


app = FastAPI(
    title="Video Hosting API",
    description="API for uploading and managing videos, with AI-generated titles and descriptions",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# Global exception handlers
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle custom application exceptions."""
    http_exc = to_http_exception(exc)
    log = logger.error if http_exc.status_code >= 500 else logger.warning
    log(
        f"Application error: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "details": exc.details,
            "path": request.url.path,
            "status_code": http_exc.status_code
        }
    )
    return JSONResponse(
        status_code=http_exc.status_code,
        content=http_exc.detail
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Wrap framework HTTP errors (404 route, 405 method) in the error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        "Request validation failed",
        extra={"errors": errors, "path": request.url.path}
    )
    return JSONResponse(
        status_code=400,
        content=error_envelope(400, "Request validation failed", errors)
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors."""
    logger.error("Database error occurred", exc_info=True)

    if isinstance(exc, OperationalError):
        return JSONResponse(
            status_code=503,
            content=error_envelope(503, "Database is temporarily unavailable. Please try again later.")
        )

    return JSONResponse(
        status_code=500,
        content=error_envelope(500, "A database error occurred. Please try again.")
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.exception("Unexpected error occurred")
    return JSONResponse(
        status_code=500,
        content=error_envelope(500, "An unexpected error occurred. Please try again later.")
    )


@app.get("/")
async def root():
    """Root endpoint returning API status and welcome message."""
    return {
        "message": "Welcome to the Video Hosting API",
        "status": "online",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring service status."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "video-hosting-api",
    }
