"""Middleware for request ID generation and propagation.

This module provides middleware that:
1. Generates or extracts request IDs (X-Request-ID) for request tracking
2. Sets them in context for access by services and loggers
3. Echoes the header in responses for client correlation
"""

import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from homefence.core.logging import set_request_id

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that generates and propagates request IDs.

    The request ID is taken from the incoming X-Request-ID header when
    present (truncated to 64 characters), otherwise an 8-character UUID
    prefix is generated. It is stored on ``request.state.request_id``, set
    in the logging context, and echoed in the response headers.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Generate request ID and set it in context."""
        incoming = request.headers.get(REQUEST_ID_HEADER)
        request_id = incoming[:MAX_REQUEST_ID_LENGTH] if incoming else str(uuid.uuid4())[:8]

        request.state.request_id = request_id
        set_request_id(request_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            set_request_id(None)
