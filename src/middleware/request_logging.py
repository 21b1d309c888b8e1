"""Request logging middleware with correlation IDs."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

import logfire

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with a correlation ID and log one line when it completes.

    An incoming correlation header is reused; otherwise a new UUID is issued.
    The ID is echoed back on the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Correlation-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.header_name.lower(), str(uuid.uuid4()))
        request.state.correlation_id = correlation_id
        start_time = time.time()

        with logfire.span("request", correlation_id=correlation_id):
            response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers[self.header_name] = correlation_id
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "correlation_id": correlation_id,
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            },
        )
        return response
