"""Queue-decoupled processing: request -> rendered record -> store -> change feed."""

import logging
from datetime import datetime, timezone

from notifyhub.errors.exceptions import TemplateNotFoundError
from notifyhub.models.notification import DEFAULT_PRIORITY, NotificationRecord, NotificationRequest
from notifyhub.models.template import Template
from notifyhub.repositories.notification_repo import NotificationRepository
from notifyhub.repositories.template_repo import TemplateRepository
from notifyhub.services.id_generator import generate_notification_id
from notifyhub.services.rendering import TemplateRenderingService
from notifyhub.streaming.change_feed import ChangeFeed

logger = logging.getLogger(__name__)


def build_record(request: NotificationRequest, notification_id: str) -> NotificationRecord:
    """Fresh, unrendered record for ``request``: nothing sent, read or disabled."""
    return NotificationRecord(
        id=notification_id,
        template_id=request.template_id,
        user_id=request.user_id,
        channel=request.channel,
        priority=request.priority or DEFAULT_PRIORITY,
        source_system=request.source_system,
        params=request.params or {},
        metadata=request.metadata or {},
        created_at=datetime.now(timezone.utc),
    )


class NotificationProcessor:
    """Renders and persists accepted notification requests.

    Exactly one notification row is written per successful ``process`` call.
    Replaying an id that is already stored writes nothing and returns the id,
    which keeps queue-level retries with a stable id from duplicating records.
    """

    def __init__(
        self,
        session_factory,
        change_feed: ChangeFeed | None = None,
        renderer: TemplateRenderingService | None = None,
    ):
        self.session_factory = session_factory
        self.change_feed = change_feed
        self.renderer = renderer or TemplateRenderingService()

    async def process(self, request: NotificationRequest, notification_id: str | None = None) -> str:
        notification_id = notification_id or generate_notification_id()
        logger.debug(
            "Processing notification %s (template=%s, user=%s)",
            notification_id, request.template_id, request.user_id,
        )
        record = build_record(request, notification_id)

        async with self.session_factory() as session:
            repo = NotificationRepository(session)
            if await repo.exists(notification_id):
                logger.info("Notification %s already stored, skipping replay", notification_id)
                return notification_id

            if record.template_id is None:
                logger.warning("Notification %s has no template_id, skipping rendering", notification_id)
            else:
                template_row = await TemplateRepository(session).get(record.template_id)
                if template_row is None:
                    raise TemplateNotFoundError(record.template_id)
                record = self.renderer.render(record, Template.from_row(template_row))

            await repo.create(**record.to_row_fields())
            await session.commit()

        logger.info("Notification %s saved for user %s", notification_id, record.user_id)

        if self.change_feed is not None:
            try:
                await self.change_feed.publish(record)
            except Exception as exc:
                # The record is stored unsent; the user's next stream replays it as backlog
                logger.warning("Failed to publish notification %s to change feed: %s", notification_id, exc)

        return notification_id
