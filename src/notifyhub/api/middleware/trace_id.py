"""Trace ID middleware for request/response propagation."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notifyhub.logging_config import bind_request_context, clear_request_context
from notifyhub.services.id_generator import generate_id

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Take X-Trace-Id from the request (or mint one), bind it for logging, echo it back.

    For SSE responses the timing covers only the time to first byte.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or generate_id("trc_")
        request.state.trace_id = trace_id
        bind_request_context(trace_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            logger.debug(
                "%s %s -> %d (%.1f ms)",
                request.method, request.url.path, response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        finally:
            clear_request_context()
        response.headers[TRACE_HEADER] = trace_id
        return response
