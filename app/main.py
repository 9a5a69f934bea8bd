"""FastAPI application entry point for the EasyForm backend.

This module initializes the FastAPI application, sets up logging and
database tables, registers routers and middleware, and maps service
exceptions onto the uniform ``{success, message, errors}`` envelope.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.logging_config import setup_logging, get_logger
from app.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from app.middleware.request_logging import RequestLoggingMiddleware
from app.models import init_db
from app.routes import drafts, forms, health
from app.services.errors import (
    FormValidationError,
    NotFoundError,
    PersistenceError,
    RateLimitError,
)

logger = get_logger(__name__)

VERSION = "1.0.1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Configure logging
    - Create missing database tables
    - Log application startup information

    Shutdown:
    - Log shutdown event
    """
    settings = get_settings()
    setup_logging()
    init_db()

    logger.info(
        f"EasyForm backend starting - "
        f"Environment: {settings.environment}, "
        f"Log Level: {settings.log_level}, "
        f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'configured'}, "
        f"Version: {settings.git_commit_sha}"
    )

    yield

    logger.info("EasyForm backend shutting down")


settings = get_settings()

app = FastAPI(
    title="EasyForm API",
    description="Secure form submission service for static websites",
    version=VERSION,
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
)


@app.get("/")
async def root() -> dict:
    """Root endpoint with basic API information."""
    return {
        "service": "EasyForm API",
        "version": VERSION,
        "environment": settings.environment,
        "status": "operational"
    }


app.include_router(health.router, tags=["Health"])
app.include_router(forms.router, prefix=settings.api_prefix, tags=["Forms"])
app.include_router(drafts.router, prefix=settings.api_prefix, tags=["Drafts"])


def _envelope(status_code: int, message: str, errors: list[str], headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errors": errors},
        headers=headers,
    )


@app.exception_handler(FormValidationError)
async def form_validation_exception_handler(request: Request, exc: FormValidationError) -> JSONResponse:
    """Map validation rejections to 400."""
    return _envelope(400, exc.message, [exc.message])


@app.exception_handler(RateLimitError)
async def rate_limit_exception_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Map guard rejections to 429 with a Retry-After hint."""
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
    return _envelope(429, exc.message, ["Rate limit exceeded"], headers)


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Map missing submissions and drafts to 404."""
    return _envelope(404, str(exc), [str(exc)])


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map request parsing failures to 400 with one error per offending field."""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return _envelope(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (404 routes, 405, 503 probes) in the envelope."""
    return _envelope(exc.status_code, str(exc.detail), [str(exc.detail)])


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Report database failures without leaking driver details."""
    logger.error(f"Persistence failure for {request.method} {request.url.path}: {exc.__cause__}")
    return _envelope(500, str(exc), ["Database operation failed"])


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled exceptions.

    Logs all unhandled exceptions and returns a generic error response
    to prevent leaking sensitive information.
    """
    logger.error(
        f"Unhandled exception for {request.method} {request.url}: {exc}",
        exc_info=True
    )
    return _envelope(500, "An unexpected error occurred. Please try again later.", ["Internal server error"])
