"""
Wellness Plan Service - FastAPI Application Entry Point.

PII-safe, safety-gated wellness plan generation.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.health import router as health_router
from app.api.plans import router as plans_router
from app.core.auth import init_firebase
from app.core.config import get_settings
from app.core.logging import get_safe_logger, setup_logging
from app.schemas.response import ErrorDetail, ErrorResponse, ResponseMetadata
from app.services.model_client import get_model_version

# Initialize logging first
setup_logging()
logger = get_safe_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Initializes Firebase on startup when it is needed.
    """
    settings = get_settings()
    logger.info(
        "Starting Wellness Plan Service",
        model_version=get_model_version(),
        backend=settings.model_backend,
        store_backend=settings.plan_store_backend
    )

    if settings.auth_mode == "firebase" or settings.plan_store_backend == "firestore":
        try:
            init_firebase()
        except Exception:
            # Don't prevent startup: health checks keep working and auth
            # fails at request time
            logger.error("Failed to initialize Firebase", error_code="FIREBASE_INIT_ERROR")

    yield

    logger.info("Shutting down Wellness Plan Service")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Wellness Plan Service",
        description="Safety-gated wellness plan generation with PII masking and guaranteed fallback",
        version="0.1.0",
        docs_url="/docs" if settings.service_env == "dev" else None,
        redoc_url="/redoc" if settings.service_env == "dev" else None,
        openapi_url="/openapi.json" if settings.service_env == "dev" else None,
        lifespan=lifespan
    )

    app.include_router(health_router)
    app.include_router(plans_router)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app


def _error_json(request_id: str, code: str, message: str, retryable: bool, status_code: int) -> JSONResponse:
    error_response = ErrorResponse(
        success=False,
        error=ErrorDetail(code=code, message=message, retryable=retryable),
        metadata=ResponseMetadata(
            modelVersion=get_model_version(),
            inferenceMs=0,
            requestId=request_id
        )
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(by_alias=True))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.
    PII-safe: validation details may echo user text, so none are returned.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

    logger.error(
        "Request validation failed",
        error_code="BAD_REQUEST",
        request_id=request_id,
        status_code=400
    )

    return _error_json(request_id, "BAD_REQUEST", "Invalid request format", False, status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTP exceptions (including auth errors and rate limiting).
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

    # Structured error (rate limiter) passes through
    if isinstance(exc.detail, dict):
        logger.error(
            "HTTP exception",
            error_code=exc.detail.get("error", {}).get("code", "UNKNOWN"),
            request_id=request_id,
            status_code=exc.status_code
        )
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    if exc.status_code == 401:
        error_code = "UNAUTHORIZED"
    elif exc.status_code in (400, 405, 422):
        error_code = "BAD_REQUEST"
    elif exc.status_code == 404:
        error_code = "NOT_FOUND"
    elif exc.status_code == 429:
        error_code = "RATE_LIMITED"
    else:
        error_code = "MODEL_ERROR"

    logger.error(
        "HTTP exception",
        error_code=error_code,
        request_id=request_id,
        status_code=exc.status_code
    )

    return _error_json(
        request_id,
        error_code,
        exc.detail if isinstance(exc.detail, str) else "Request failed",
        exc.status_code >= 500 or exc.status_code == 429,
        exc.status_code,
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.
    PII-safe: only the exception class is logged.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

    logger.error(
        "Unexpected error",
        error_code="MODEL_ERROR",
        request_id=request_id,
        status_code=500,
        exception_class=type(exc).__name__
    )

    return _error_json(request_id, "MODEL_ERROR", "Internal server error", True, status.HTTP_500_INTERNAL_SERVER_ERROR)


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.service_env == "dev"
    )
