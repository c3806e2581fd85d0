"""Request logging middleware for FastAPI.

Logs every API request with:
- Caller identity (from the gateway identity header)
- HTTP method, path and response status
- Client IP address
- Duration
"""

import json
import logging
import time
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths that should not be logged (health checks, docs)
EXCLUDED_PATHS = {
    "/health",
    "/health/live",
    "/health/ready",
    "/health/detailed",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First entry is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def get_caller_id(request: Request, header: str = "X-Identity") -> Optional[str]:
    raw = request.headers.get(header)
    if not raw:
        return None
    try:
        claims = json.loads(raw)
    except ValueError:
        return None
    return claims.get("id") if isinstance(claims, dict) else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"user={get_caller_id(request) or '-'} ip={get_client_ip(request)} "
            f"{duration_ms:.1f}ms"
        )
        return response
