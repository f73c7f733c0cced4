"""Notification accept, live stream, query and status routes."""

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from notifyhub.dependencies import get_db, get_language, get_merger, get_queue, get_session_manager
from notifyhub.models.common import CountResponse
from notifyhub.models.notification import (
    NotificationFilter,
    NotificationIdResponse,
    NotificationPage,
    NotificationView,
    SendNotificationRequest,
)
from notifyhub.services.notification_service import NotificationService, publish_notification_request
from notifyhub.streaming.merger import LiveDeliveryMerger, NotificationStream
from notifyhub.streaming.sessions import SessionManager
from notifyhub.workers.queue import NotificationQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def format_sse(view: NotificationView) -> str:
    data = json.dumps(view.model_dump(mode="json"))
    return f"id: {view.id}\nevent: notification\ndata: {data}\n\n"


async def _event_generator(stream: NotificationStream) -> AsyncGenerator[str, None]:
    """Yield SSE frames until the live stream ends; a clean end closes the response."""
    try:
        async for view in stream:
            yield format_sse(view)
    except asyncio.CancelledError:
        pass
    finally:
        await stream.aclose()
        logger.info("Live subscriber disconnected (user=%s, outcome=%s)", stream.user_id, stream.outcome)


# ---------------------------------------------------------------------------
# Live delivery
# ---------------------------------------------------------------------------

@router.get("/subscribe/{user_id}")
async def subscribe(
    user_id: str,
    language: str = Depends(get_language),
    merger: LiveDeliveryMerger = Depends(get_merger),
):
    """Stream the user's notifications over SSE. Only one stream per user stays open."""
    stream = merger.stream(user_id, language)
    logger.info("Live subscriber connected (user=%s, language=%s)", user_id, language)
    return StreamingResponse(
        _event_generator(stream),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "Connection": "keep-alive",
        },
    )


@router.post("/unsubscribe/{user_id}")
async def unsubscribe(
    user_id: str,
    sessions: SessionManager = Depends(get_session_manager),
) -> dict:
    """Close the user's live stream, if any."""
    closed = sessions.unsubscribe(user_id)
    return {"user_id": user_id, "closed": closed}


# ---------------------------------------------------------------------------
# Accept
# ---------------------------------------------------------------------------

@router.post("/send", status_code=202, response_model=NotificationIdResponse)
async def send_notification(
    request: SendNotificationRequest,
    db: AsyncSession = Depends(get_db),
    queue: NotificationQueue = Depends(get_queue),
) -> NotificationIdResponse:
    """Accept a notification; rendering and storage happen asynchronously."""
    notification_id = await publish_notification_request(db, queue, request)
    return NotificationIdResponse(notification_id=notification_id)


# ---------------------------------------------------------------------------
# Single notification
# ---------------------------------------------------------------------------

@router.get("/notification/{notification_id}", response_model=NotificationView)
async def get_notification(
    notification_id: str,
    language: str = Depends(get_language),
    db: AsyncSession = Depends(get_db),
) -> NotificationView:
    return await NotificationService(db).get_notification(notification_id, language)


@router.put("/notification/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    await NotificationService(db).mark_as_read(notification_id)
    return {"notification_id": notification_id, "read": True}


@router.put("/notification/{notification_id}/disable")
async def disable_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    await NotificationService(db).disable_notification(notification_id)
    return {"notification_id": notification_id, "disabled": True}


# ---------------------------------------------------------------------------
# Per-user
# ---------------------------------------------------------------------------

@router.get("/{user_id}", response_model=NotificationPage)
async def list_notifications(
    user_id: str,
    read: bool | None = Query(None),
    channel: str | None = Query(None),
    priority: str | None = Query(None),
    page: int = Query(0),
    size: int = Query(20),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_direction: str | None = Query(None, alias="sortDirection"),
    language: str = Depends(get_language),
    db: AsyncSession = Depends(get_db),
) -> NotificationPage:
    """List a user's notifications with optional filters, sorting and paging."""
    filter = NotificationFilter(
        read=read,
        channel=channel,
        priority=priority,
        page=page,
        size=size,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    logger.debug("Filtering notifications for user %s with %s", user_id, filter)
    return await NotificationService(db).list_notifications(user_id, filter, language)


@router.get("/{user_id}/unread-count", response_model=CountResponse)
async def unread_count(user_id: str, db: AsyncSession = Depends(get_db)) -> CountResponse:
    return CountResponse(count=await NotificationService(db).count_unread(user_id))


@router.put("/{user_id}/mark-all-read", response_model=CountResponse)
async def mark_all_read(user_id: str, db: AsyncSession = Depends(get_db)) -> CountResponse:
    return CountResponse(count=await NotificationService(db).mark_all_as_read(user_id))


@router.put("/{user_id}/disable-all", response_model=CountResponse)
async def disable_all(user_id: str, db: AsyncSession = Depends(get_db)) -> CountResponse:
    """Soft-delete every notification of the user."""
    return CountResponse(count=await NotificationService(db).disable_all(user_id))


@router.delete("/{user_id}/disabled", response_model=CountResponse)
async def purge_disabled(user_id: str, db: AsyncSession = Depends(get_db)) -> CountResponse:
    """Permanently remove the user's already-disabled notifications."""
    return CountResponse(count=await NotificationService(db).purge_disabled(user_id))
