"""Notification accept path and read/status operations."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from notifyhub.config import settings
from notifyhub.errors.exceptions import NotificationNotFoundError, PublishFailedError, TemplateNotFoundError
from notifyhub.models.notification import (
    NotificationFilter,
    NotificationPage,
    NotificationRecord,
    NotificationRequest,
    NotificationView,
)
from notifyhub.models.template import Template
from notifyhub.repositories.notification_repo import NotificationRepository
from notifyhub.repositories.template_repo import TemplateRepository
from notifyhub.services import filter_query
from notifyhub.services.id_generator import generate_notification_id
from notifyhub.services.rendering import missing_required_params, to_view
from notifyhub.workers.queue import NOTIFICATION_ID_HEADER, NotificationQueue, QueueMessage

logger = logging.getLogger(__name__)


async def publish_notification_request(
    session: AsyncSession, queue: NotificationQueue, request: NotificationRequest
) -> str:
    """Validate the template, assign an id, and enqueue the request.

    Raises TemplateNotFoundError before anything is queued, and
    PublishFailedError when the queue does not take the message.
    """
    template_row = await TemplateRepository(session).get(request.template_id)
    if template_row is None:
        raise TemplateNotFoundError(request.template_id)

    missing = missing_required_params(Template.from_row(template_row), request.params)
    if missing:
        # Advisory only: the request is still accepted and rendered with placeholders
        logger.warning(
            "Request for template %s is missing required parameters %s",
            request.template_id, missing,
        )

    notification_id = generate_notification_id()
    message = QueueMessage(
        key=request.user_id,
        payload=request.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers={NOTIFICATION_ID_HEADER: notification_id},
    )
    try:
        await queue.send(message)
    except Exception as exc:
        raise PublishFailedError(queue.topic, f"Failed to publish to '{queue.topic}': {exc}") from exc

    logger.debug(
        "Published notification request %s for user %s with template %s",
        notification_id, request.user_id, request.template_id,
    )
    return notification_id


class NotificationService:
    """Read-side queries and status transitions on stored notifications."""

    def __init__(self, session: AsyncSession, default_language: str | None = None):
        self.session = session
        self.repo = NotificationRepository(session)
        self.default_language = default_language or settings.default_language

    async def get_notification(self, notification_id: str, language: str) -> NotificationView:
        row = await self.repo.get(notification_id)
        if row is None or row.disabled:
            raise NotificationNotFoundError(notification_id)
        return to_view(NotificationRecord.from_row(row), language, self.default_language)

    async def list_notifications(
        self, user_id: str, filter: NotificationFilter, language: str
    ) -> NotificationPage:
        rows = await self.repo.find_filtered(user_id, filter)
        total = await self.repo.count_filtered(user_id, filter)
        views = [
            to_view(NotificationRecord.from_row(row), language, self.default_language)
            for row in rows
        ]
        return filter_query.build_page(views, total, filter)

    async def count_unread(self, user_id: str) -> int:
        return await self.repo.count_unread(user_id)

    async def mark_as_read(self, notification_id: str) -> None:
        """Idempotent for notifications already read; unknown ids are not found."""
        changed = await self.repo.mark_read(notification_id)
        if not changed and not await self.repo.exists(notification_id):
            raise NotificationNotFoundError(notification_id)
        await self.session.commit()
        logger.debug("Marked notification as read: %s", notification_id)

    async def mark_all_as_read(self, user_id: str) -> int:
        count = await self.repo.mark_all_read(user_id)
        await self.session.commit()
        logger.debug("Marked %d notifications as read for user %s", count, user_id)
        return count

    async def disable_notification(self, notification_id: str) -> None:
        changed = await self.repo.disable(notification_id)
        if not changed and not await self.repo.exists(notification_id):
            raise NotificationNotFoundError(notification_id)
        await self.session.commit()
        logger.debug("Disabled notification %s", notification_id)

    async def disable_all(self, user_id: str) -> int:
        count = await self.repo.disable_all(user_id)
        await self.session.commit()
        logger.debug("Disabled %d notifications for user %s", count, user_id)
        return count

    async def purge_disabled(self, user_id: str) -> int:
        """Permanently delete notifications that were already disabled."""
        count = await self.repo.purge_disabled(user_id)
        await self.session.commit()
        logger.info("Permanently deleted %d disabled notifications for user %s", count, user_id)
        return count
