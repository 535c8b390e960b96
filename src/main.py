"""FastAPI application initialization."""

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.auth import router as auth_router
from src.api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware
from src.api.routes import router
from src.api.users import router as users_router
from src.config import get_settings
from src.context import build_context
from src.database import close_database, init_database
from src.errors import ApplicationError, ErrorKind, InfrastructureError
from src.services.logging_service import configure_logging, get_logger
from src.services.redis_service import close_redis, get_redis

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings.log_level)
    logger = get_logger("main")

    # Connect Postgres and Redis in parallel; Redis degrades to None
    pool, redis_client = await asyncio.gather(init_database(), get_redis())
    if redis_client is None:
        logger.warning(
            "redis_unavailable",
            note="Continuing without Redis - every cache read will miss",
        )

    app.state.context = build_context(settings, pool, redis_client)

    logger.info(
        "application_started",
        environment=settings.environment,
        log_level=settings.log_level,
    )

    yield

    # Shutdown
    await close_database()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title="Accounts API",
    description="User registration, login and session management",
    version="1.0.0",
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    """Return domain errors with their own status and message."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Turn Pydantic validation errors into a 422 with field-level details."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    details = []
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        message = error.get("msg", "Validation failed")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": str(loc[-1]), "message": message})

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        path=request.url.path,
        details=details,
    )

    error = ApplicationError(ErrorKind.INVARIANT_VALIDATION, details=details)
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response(),
        headers={CORRELATION_HEADER: correlation_id},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Framework HTTP errors (unknown routes, bad methods) in the common envelope."""
    if exc.status_code == 404:
        message = ErrorKind.NOT_FOUND.default_message
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "fail", "message": message},
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(
    request: Request, exc: InfrastructureError
) -> JSONResponse:
    """Log database/cache failures in detail and hide them behind a 500."""
    logger = structlog.get_logger()
    logger.error(
        "infrastructure_error",
        error_type=type(exc).__name__,
        error=str(exc),
        method=request.method,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure and return a generic 500."""
    logger = structlog.get_logger()
    logger.error(
        "unhandled_error",
        error_type=type(exc).__name__,
        error=str(exc),
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
        headers={CORRELATION_HEADER: _correlation_id(request)},
    )


# CORS middleware for the frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

# Include API routes
app.include_router(users_router, prefix=settings.api_prefix)
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(router)
