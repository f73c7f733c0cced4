"""FastAPI exception handlers producing the uniform ErrorResponse body."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notifyhub.errors.exceptions import NotifyHubError, PublishFailedError
from notifyhub.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(NotifyHubError)
    async def notifyhub_error_handler(request: Request, exc: NotifyHubError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if isinstance(exc, PublishFailedError):
            logger.error(
                "Publish to topic %s failed (path=%s, trace_id=%s): %s",
                exc.topic, request.url.path, trace_id, exc.message,
            )
        elif exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        else:
            logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)

        error_response = ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
                path=request.url.path,
                trace_id=trace_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json", exclude_none=True),
        )
