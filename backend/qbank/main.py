"""
Main FastAPI application entry point.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from qbank.api.v1.api import api_router
from qbank.core.config import settings
from qbank.core.error_responses import (
    HTTP_STATUS_BY_CODE,
    ErrorCode,
    ErrorMessages,
    PracticeError,
)
from qbank.core.error_tracking import (
    capture_error,
    init_error_tracking,
    shutdown_error_tracking,
)
from qbank.core.logging_config import setup_logging
from qbank.middleware import RequestLoggingMiddleware
from qbank.models import async_engine

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    - On startup: initializes Sentry error tracking
    - On shutdown: flushes pending error events and disposes the engine
    """
    if init_error_tracking():
        logger.info("Sentry error tracking enabled")

    yield

    shutdown_error_tracking()
    await async_engine.dispose()
    logger.info("Application shutdown complete")


tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "practice",
        "description": (
            "Practice sessions: start, next question, answer submission, "
            "mark for review, end, review, history, missed questions and bookmarks"
        ),
    },
]


def _field_errors_from_validation(exc: RequestValidationError) -> Dict[str, List[str]]:
    field_errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body",)]
        field = ".".join(loc) or "request"
        field_errors.setdefault(field, []).append(str(error.get("msg", "")))
    return field_errors


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**QBank Practice API** - practice sessions over a published "
            "multiple-choice question bank.\n\n"
            "The caller's identity is passed in the `X-User-Id` header. "
            "Mutating endpoints accept an `Idempotency-Key` header so retries "
            "are safe."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-User-Id",
            "X-Request-ID",
            "Idempotency-Key",
        ],
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(PracticeError)
    async def practice_error_handler(request: Request, exc: PracticeError):
        """
        Map use case errors onto HTTP statuses with a stable JSON body.
        """
        if exc.code == ErrorCode.INTERNAL_ERROR:
            error_id = str(uuid.uuid4())
            logger.error(
                f"Internal practice error [error_id={error_id}]: {exc.message}",
                extra={"error_id": error_id, "path": str(request.url.path)},
            )
            capture_error(
                exc,
                context={
                    "path": str(request.url.path),
                    "method": request.method,
                    "error_id": error_id,
                },
                tags={"error_type": "PracticeError"},
            )
            return JSONResponse(
                status_code=exc.http_status,
                content={**exc.to_dict(), "error_id": error_id},
            )

        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handle framework HTTP errors (unknown routes, wrong methods).
        """
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            code = ErrorCode.NOT_FOUND
        elif exc.status_code == status.HTTP_409_CONFLICT:
            code = ErrorCode.CONFLICT
        elif exc.status_code < 500:
            code = ErrorCode.VALIDATION_ERROR
        else:
            code = ErrorCode.INTERNAL_ERROR
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": code.value, "message": str(exc.detail)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        field_errors = _field_errors_from_validation(exc)
        logger.info(
            "Request validation failed",
            extra={"path": str(request.url.path), "method": request.method},
        )
        return JSONResponse(
            status_code=HTTP_STATUS_BY_CODE[ErrorCode.VALIDATION_ERROR],
            content={
                "code": ErrorCode.VALIDATION_ERROR.value,
                "message": ErrorMessages.INVALID_INPUT,
                "field_errors": field_errors,
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions and track them.

        Generates a unique error_id (UUID) for each exception so a specific
        failure can be found in logs. Internal details are never returned.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        capture_error(
            exc,
            context={
                "path": str(request.url.path),
                "method": request.method,
                "error_id": error_id,
            },
            tags={"error_type": exc.__class__.__name__},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": ErrorMessages.UNEXPECTED_ERROR,
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
