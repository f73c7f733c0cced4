"""Health endpoints: process liveness and delivery-pipeline readiness."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from notifyhub.workers.queue import LocalQueue

router = APIRouter()

SERVICE_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "notifyhub", "version": SERVICE_VERSION}


@router.get("/health/live")
async def liveness():
    """200 as long as the event loop answers; no dependency is touched."""
    return {"status": "alive"}


async def _check_store(request: Request) -> str:
    try:
        async with request.app.state.db_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


async def _check_transport(request: Request) -> str:
    """Redis carries both the request queue and the change feed; local mode has neither."""
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


@router.get("/health/ready")
async def readiness(request: Request):
    """Ready when the notification store answers and, outside local mode, Redis does too.

    Also reports the request queue topic, the in-process backlog when the
    queue is local, and how many live streams this instance holds.
    """
    checks = {
        "database": await _check_store(request),
        "redis": await _check_transport(request),
    }
    ready = all(value in ("ok", "disabled") for value in checks.values())

    queue = getattr(request.app.state, "notification_queue", None)
    sessions = getattr(request.app.state, "session_manager", None)
    body = {
        "status": "ready" if ready else "not_ready",
        "checks": checks,
        "queue_topic": queue.topic if queue is not None else None,
        "live_sessions": sessions.active_count() if sessions is not None else 0,
    }
    if isinstance(queue, LocalQueue):
        body["queued_requests"] = queue.qsize()
    return JSONResponse(status_code=200 if ready else 503, content=body)
