"""Background consumer feeding queued notification requests to the processor."""

import asyncio
import logging

from pydantic import ValidationError as PydanticValidationError

from notifyhub.errors.exceptions import NotFoundError
from notifyhub.logging_config import notification_context
from notifyhub.models.notification import NotificationRequest
from notifyhub.services.id_generator import generate_notification_id
from notifyhub.workers.processor import NotificationProcessor
from notifyhub.workers.queue import (
    NOTIFICATION_ID_HEADER,
    RETRY_COUNT_HEADER,
    NotificationQueue,
    QueueMessage,
)

logger = logging.getLogger(__name__)


class NotificationConsumer:
    """Receive -> process -> ack loop with queue-level retry.

    Malformed payloads and missing templates go straight to the dead-letter
    topic. Other failures are re-queued with the same notification id and an
    incremented retry count until ``max_retries`` is exhausted.
    """

    def __init__(
        self,
        queue: NotificationQueue,
        processor: NotificationProcessor,
        max_retries: int = 3,
        poll_timeout: float = 1.0,
    ):
        self.queue = queue
        self.processor = processor
        self.max_retries = max_retries
        self.poll_timeout = poll_timeout

    async def handle(self, message: QueueMessage) -> str | None:
        """Process one message. Returns the notification id on success."""
        # Pin the id before the first attempt so every retry replays it
        notification_id = message.notification_id or generate_notification_id()
        message.headers[NOTIFICATION_ID_HEADER] = notification_id
        retry_count = message.retry_count

        try:
            request = NotificationRequest.model_validate(message.payload)
        except PydanticValidationError as exc:
            logger.error("Invalid notification request %s: %s", notification_id, exc)
            await self.queue.dead_letter(message, f"invalid payload: {exc.error_count()} errors")
            await self.queue.ack(message)
            return None

        with notification_context(notification_id, request.user_id):
            return await self._process(message, request, notification_id, retry_count)

    async def _process(
        self, message: QueueMessage, request: NotificationRequest, notification_id: str, retry_count: int
    ) -> str | None:
        logger.debug(
            "Received notification request for user %s with template %s (id=%s)",
            request.user_id, request.template_id, notification_id,
        )
        try:
            saved_id = await self.processor.process(request, notification_id)
        except NotFoundError as exc:
            logger.error("Notification %s rejected: %s", notification_id, exc.message)
            await self.queue.dead_letter(message, exc.code)
            await self.queue.ack(message)
            return None
        except Exception as exc:
            logger.exception(
                "Failed to process notification %s for user %s (retry=%d)",
                notification_id, request.user_id, retry_count,
            )
            if retry_count < self.max_retries:
                retry = QueueMessage(
                    key=message.key,
                    payload=message.payload,
                    headers={**message.headers, RETRY_COUNT_HEADER: str(retry_count + 1)},
                )
                await self.queue.send(retry)
            else:
                await self.queue.dead_letter(message, f"retries exhausted: {exc}")
            await self.queue.ack(message)
            return None

        await self.queue.ack(message)
        logger.debug("Notification created: %s for user %s", saved_id, request.user_id)
        return saved_id

    async def run(self) -> None:
        """Consume until cancelled."""
        logger.info("Notification consumer started (topic=%s)", self.queue.topic)
        while True:
            try:
                message = await self.queue.receive(timeout=self.poll_timeout)
                if message is None:
                    continue
                await self.handle(message)
            except asyncio.CancelledError:
                logger.info("Notification consumer stopped")
                break
            except Exception as exc:
                logger.exception("Consumer error: %s", exc)
                await asyncio.sleep(self.poll_timeout)
