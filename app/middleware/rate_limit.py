"""Per-IP request throttling for the form and draft routes.

Each decorated route gets its own budget per client IP, sized by the
``rate_limit_*`` settings. This sits in front of the submission guard,
which throttles submissions per session and IP from stored history.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.middleware.request_logging import get_client_ip
from app.logging_config import get_logger

logger = get_logger(__name__)


def client_ip_key(request: Request) -> str:
    """Throttling key: the resolved client IP."""
    return get_client_ip(request) or "unknown"


def api_rate_limit() -> str:
    """Current request limit, read from settings on every request."""
    return get_settings().get_rate_limit()


limiter = Limiter(key_func=client_ip_key)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Reject throttled requests with the uniform 429 envelope."""
    logger.warning(
        f"Request throttled for {client_ip_key(request)} on {request.method} {request.url.path}: {exc.detail}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": "Too many requests. Please try again later.",
            "errors": ["Rate limit exceeded"],
        },
        headers={"Retry-After": str(get_settings().rate_limit_window_seconds)},
    )
