"""Correlation ID middleware for FastAPI.

Injects a correlation ID into each request so audit actions and log lines
produced while handling it can be traced together.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Context variable to store correlation ID for current request
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get current request correlation ID.

    Returns:
        Current correlation ID or empty string if not set.
    """
    return correlation_id_ctx.get()


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_ctx.set(correlation_id)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to inject correlation ID into requests.

    Uses the X-Correlation-ID header when present, otherwise a new UUID,
    and echoes it on the response.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        correlation_id = request.headers.get(
            CORRELATION_ID_HEADER.lower(),
            str(uuid.uuid4())
        )

        token = correlation_id_ctx.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_ctx.reset(token)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
