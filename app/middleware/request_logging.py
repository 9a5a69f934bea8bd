"""Request logging middleware and client metadata extraction.

Every request is logged once on completion with method, path, status,
duration, client IP and user agent. A request id is generated (or taken
from the X-Request-ID header) and echoed back in the response headers.
"""

import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.config import get_settings
from app.logging_config import get_logger


logger = get_logger("app.http")

REQUEST_ID_HEADER = "X-Request-ID"


def get_client_ip(request: Request, trusted_proxies: Optional[List[str]] = None) -> Optional[str]:
    """Resolve the client IP from the connection peer.

    The first X-Forwarded-For hop is used only when the peer itself is a
    trusted proxy; otherwise the header is client-controlled and ignored.

    Args:
        request: FastAPI request object
        trusted_proxies: Peer addresses allowed to forward the client IP
            (defaults to the ``trusted_proxies`` setting)

    Returns:
        Client IP address, or None when it cannot be determined
    """
    peer = request.client.host if request.client else None
    if trusted_proxies is None:
        trusted_proxies = get_settings().get_trusted_proxies_list()

    if peer is not None and peer in trusted_proxies:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop
    return peer


def extract_request_metadata(request: Request) -> Dict[str, Any]:
    """Collect submitter metadata from request headers.

    Args:
        request: FastAPI request object

    Returns:
        Dict with userAgent, ipAddress, referer and origin (None when absent)

    Example:
        metadata = extract_request_metadata(request)
        service.submit_form(body, metadata)
    """
    return {
        "userAgent": request.headers.get("user-agent"),
        "ipAddress": get_client_ip(request),
        "referer": request.headers.get("referer"),
        "origin": request.headers.get("origin"),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per handled request with timing and client context."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        client_ip = get_client_ip(request) or "unknown"
        user_agent = request.headers.get("user-agent", "")
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"- {duration_ms:.1f}ms - {client_ip} - {user_agent}",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            }
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
