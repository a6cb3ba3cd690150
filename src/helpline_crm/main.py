"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpline_crm import __version__
from helpline_crm.api import (
    agents,
    appointments,
    calls,
    health,
    patients,
    realtime,
    stats,
    webhooks,
)
from helpline_crm.api.rate_limits import limiter
from helpline_crm.config import get_settings, require_valid_settings
from helpline_crm.core.exceptions import HelplineError
from helpline_crm.core.logging import get_logger, setup_logging
from helpline_crm.db import close_db, init_db
from helpline_crm.integrations.voice import close_voice_gateway

STATIC_DIR = Path(__file__).parent / "static"


def helpline_exception_handler(request: Request, exc: HelplineError) -> JSONResponse:
    """Handle application errors raised by services and repositories."""
    log = get_logger(__name__)
    log_method = log.warning if exc.status_code < 500 else log.error
    log_method(
        "Request failed",
        error=exc.message,
        error_code=exc.error_code,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "Too many requests. Please try again later.",
            "error_code": "rate_limit_exceeded",
            "detail": str(exc.detail),
        },
    )


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with the standard error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": str(exc.detail),
            "error_code": _status_code_to_error_type(exc.status_code),
        },
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with detailed field information."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({
            "field": field or "request",
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "Request validation failed",
            "error_code": "validation_error",
            "details": errors,
        },
    )


def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Logs the error and returns a generic 500 response without exposing
    internal details outside debug mode.
    """
    log = get_logger(__name__)
    log.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )

    settings = get_settings()
    detail = str(exc) if settings.debug else "An internal error occurred"

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": detail,
            "error_code": "internal_error",
        },
    )


def _status_code_to_error_type(status_code: int) -> str:
    """Map HTTP status codes to error type strings."""
    error_types = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        429: "rate_limit_exceeded",
        500: "internal_error",
        502: "bad_gateway",
        503: "service_unavailable",
        504: "gateway_timeout",
    }
    return error_types.get(status_code, "error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    log = get_logger(__name__)

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        service_name=settings.service_name,
    )

    log.info(
        "Starting Helpline CRM",
        version=__version__,
        environment=settings.environment,
        port=settings.api_port,
    )

    try:
        require_valid_settings()
    except ValueError as e:
        log.warning("Configuration is not production ready", errors=str(e))

    if not settings.telephony.twilio.is_configured:
        log.warning("Twilio is not configured; outbound calling is disabled")

    log.info("Initializing database")
    await init_db()
    log.info("Database initialized successfully")

    yield

    log.info("Shutting down Helpline CRM")
    await close_voice_gateway()
    await close_db()
    log.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="104 Medical Helpline CRM",
        description="Call-center CRM for medical helpline agents",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Rate limiting
    app.state.limiter = limiter

    # Exception handlers
    app.add_exception_handler(HelplineError, helpline_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Cannot use wildcard origins with credentials
    cors_origins = (
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
        if settings.debug
        else []
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(agents.router, prefix="/api", tags=["Agents"])
    app.include_router(patients.router, prefix="/api", tags=["Patients"])
    app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
    app.include_router(calls.router, prefix="/api", tags=["Calls"])
    app.include_router(appointments.router, prefix="/api", tags=["Appointments"])
    app.include_router(stats.router, prefix="/api", tags=["Reports"])
    app.include_router(realtime.router, tags=["Realtime"])

    # Dashboard; mounted last so it never shadows the API
    if STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
    else:
        get_logger(__name__).warning("Dashboard assets not found", path=str(STATIC_DIR))

    return app


# Create application instance
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "helpline_crm.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
