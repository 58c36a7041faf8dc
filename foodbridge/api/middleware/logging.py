"""Access log middleware."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("foodbridge.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        request_id = getattr(request.state, "request_id", "-")
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.1f}ms) [{request_id}]"
        )
        return response
