"""HTTP middleware."""

from foodbridge.api.middleware.logging import LoggingMiddleware
from foodbridge.api.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
