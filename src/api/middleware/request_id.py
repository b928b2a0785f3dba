"""
Request correlation middleware.

Every request carries an ``X-Request-ID``: a well-formed client value is
kept so traces can span services, anything else is replaced with a fresh
UUID. The ID is exposed on ``request.state``, echoed on the response and
bound to the logging context so audit and denial logs can be joined with
the request that produced them.
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.config import get_settings
from src.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Printable token without spaces; keeps log lines and headers clean
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def accept_request_id(incoming: Optional[str]) -> str:
    """Return the client's request ID if usable, otherwise a new one."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID to each request and flag slow ones."""

    def __init__(self, app: ASGIApp, slow_request_ms: Optional[float] = None):
        super().__init__(app)
        if slow_request_ms is None:
            slow_request_ms = get_settings().slow_request_ms
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers[REQUEST_ID_HEADER] = request_id

            if duration_ms > self.slow_request_ms:
                logger.warning(
                    "Slow request",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 1),
                    },
                )

            return response
        finally:
            request_id_var.reset(token)
