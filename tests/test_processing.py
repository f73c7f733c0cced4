"""Tests for the notification processor and the queue consumer."""

import asyncio

import pytest

from notifyhub.errors.exceptions import TemplateNotFoundError
from notifyhub.models.notification import NotificationRequest
from notifyhub.repositories.notification_repo import NotificationRepository
from notifyhub.streaming.change_feed import LocalChangeFeed
from notifyhub.workers.consumer import NotificationConsumer
from notifyhub.workers.processor import NotificationProcessor
from notifyhub.workers.queue import (
    NOTIFICATION_ID_HEADER,
    RETRY_COUNT_HEADER,
    LocalQueue,
    QueueMessage,
)


def _message(payload: dict, notification_id: str | None = "ntf_fixed") -> QueueMessage:
    headers = {NOTIFICATION_ID_HEADER: notification_id} if notification_id else {}
    return QueueMessage(key=payload.get("userId", ""), payload=payload, headers=headers)


async def _drain(queue: LocalQueue, consumer: NotificationConsumer) -> list:
    results = []
    while True:
        message = await queue.receive(timeout=0.05)
        if message is None:
            return results
        results.append(await consumer.handle(message))


class FlakyProcessor:
    """Processor double that fails a fixed number of times."""

    def __init__(self, failures: int):
        self.failures = failures
        self.seen_ids: list[str] = []

    async def process(self, request, notification_id=None):
        self.seen_ids.append(notification_id)
        if len(self.seen_ids) <= self.failures:
            raise RuntimeError("database unavailable")
        return notification_id


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------

async def test_process_renders_and_stores(session_factory, make_template):
    await make_template()
    processor = NotificationProcessor(session_factory)

    notification_id = await processor.process(
        NotificationRequest(
            template_id="payment-success-sms",
            user_id="user-1",
            params={"name": "Ali", "amount": 25},
            metadata={"orderId": "o-1"},
        )
    )

    assert notification_id.startswith("ntf_")
    async with session_factory() as session:
        row = await NotificationRepository(session).get(notification_id)
    assert row.channel == "SMS"
    assert row.priority == "NORMAL"
    assert row.rendered_content["en"]["body"] == "Hi Ali, you paid 25 AZN"
    assert row.rendered_content["az"]["body"] == "Salam Ali, 25 AZN ödədiniz"
    # Flat fields mirror the default language
    assert row.body == "Salam Ali, 25 AZN ödədiniz"
    assert row.extra_data == {"orderId": "o-1"}
    assert (row.sent, row.read, row.disabled) == (False, False, False)


async def test_process_uses_supplied_id(session_factory, make_template):
    await make_template()
    processor = NotificationProcessor(session_factory)
    request = NotificationRequest(template_id="payment-success-sms", user_id="user-1")
    assert await processor.process(request, "ntf_given") == "ntf_given"


async def test_process_unknown_template_raises(session_factory):
    processor = NotificationProcessor(session_factory)
    with pytest.raises(TemplateNotFoundError) as exc_info:
        await processor.process(NotificationRequest(template_id="missing", user_id="user-1"), "ntf_x")
    assert exc_info.value.template_id == "missing"

    async with session_factory() as session:
        assert not await NotificationRepository(session).exists("ntf_x")


async def test_process_without_template_stores_unrendered(session_factory):
    processor = NotificationProcessor(session_factory)
    notification_id = await processor.process(NotificationRequest(user_id="user-1", channel="PUSH"))

    async with session_factory() as session:
        row = await NotificationRepository(session).get(notification_id)
    assert row.rendered_content == {}
    assert row.subject is None
    assert row.channel == "PUSH"


async def test_process_replay_is_noop(session_factory, make_template):
    await make_template()
    processor = NotificationProcessor(session_factory)
    request = NotificationRequest(template_id="payment-success-sms", user_id="user-1")

    await processor.process(request, "ntf_once")
    async with session_factory() as session:
        await NotificationRepository(session).mark_read("ntf_once")
        await session.commit()

    assert await processor.process(request, "ntf_once") == "ntf_once"
    async with session_factory() as session:
        row = await NotificationRepository(session).get("ntf_once")
    assert row.read is True


async def test_process_publishes_to_change_feed(session_factory, make_template):
    await make_template()
    feed = LocalChangeFeed()
    processor = NotificationProcessor(session_factory, feed)

    async with feed.watch("user-1") as records:
        notification_id = await processor.process(
            NotificationRequest(template_id="payment-success-sms", user_id="user-1")
        )
        record = await anext(records)

    assert record.id == notification_id
    assert record.sent is False


# ---------------------------------------------------------------------------
# Consumer
# ---------------------------------------------------------------------------

async def test_consumer_processes_and_acks(session_factory, make_template):
    await make_template()
    queue = LocalQueue("notification-requests")
    consumer = NotificationConsumer(queue, NotificationProcessor(session_factory))

    await queue.send(_message({"templateId": "payment-success-sms", "userId": "user-1"}))
    assert await _drain(queue, consumer) == ["ntf_fixed"]
    assert queue.dead_letters == []

    async with session_factory() as session:
        assert await NotificationRepository(session).exists("ntf_fixed")


async def test_consumer_assigns_id_when_header_missing(session_factory, make_template):
    await make_template()
    queue = LocalQueue("notification-requests")
    consumer = NotificationConsumer(queue, NotificationProcessor(session_factory))

    await queue.send(_message({"templateId": "payment-success-sms", "userId": "user-1"}, None))
    [notification_id] = await _drain(queue, consumer)
    assert notification_id.startswith("ntf_")


async def test_consumer_dead_letters_unknown_template(session_factory):
    queue = LocalQueue("notification-requests")
    consumer = NotificationConsumer(queue, NotificationProcessor(session_factory))

    await queue.send(_message({"templateId": "missing", "userId": "user-1"}))
    assert await _drain(queue, consumer) == [None]

    [(message, reason)] = queue.dead_letters
    assert reason == "TEMPLATE_NOT_FOUND"
    assert message.notification_id == "ntf_fixed"


async def test_consumer_dead_letters_invalid_payload(session_factory):
    queue = LocalQueue("notification-requests")
    consumer = NotificationConsumer(queue, NotificationProcessor(session_factory))

    await queue.send(_message({"templateId": "payment-success-sms"}))
    assert await _drain(queue, consumer) == [None]
    assert queue.dead_letters[0][1].startswith("invalid payload")


async def test_consumer_retries_with_same_id():
    queue = LocalQueue("notification-requests")
    processor = FlakyProcessor(failures=2)
    consumer = NotificationConsumer(queue, processor, max_retries=3)

    await queue.send(_message({"templateId": "t", "userId": "user-1"}))
    assert await _drain(queue, consumer) == [None, None, "ntf_fixed"]
    assert processor.seen_ids == ["ntf_fixed"] * 3
    assert queue.dead_letters == []


async def test_consumer_dead_letters_after_retries_exhausted():
    queue = LocalQueue("notification-requests")
    consumer = NotificationConsumer(queue, FlakyProcessor(failures=10), max_retries=2)

    await queue.send(_message({"templateId": "t", "userId": "user-1"}))
    assert await _drain(queue, consumer) == [None, None, None]

    [(message, reason)] = queue.dead_letters
    assert message.headers[RETRY_COUNT_HEADER] == "2"
    assert reason.startswith("retries exhausted")
    assert queue.qsize() == 0


def test_queue_message_fields_preserve_headers():
    message = QueueMessage(
        key="user-1",
        payload={"userId": "user-1", "params": {"amount": 5}},
        headers={NOTIFICATION_ID_HEADER: "ntf_1", RETRY_COUNT_HEADER: "1"},
    )
    restored = QueueMessage.from_fields("1-0", message.to_fields())
    assert restored.payload == message.payload
    assert restored.notification_id == "ntf_1"
    assert restored.retry_count == 1
    assert restored.message_id == "1-0"


async def test_local_queue_rejects_when_full():
    queue = LocalQueue("notification-requests", maxsize=1)
    await queue.send(_message({"userId": "user-1"}))
    with pytest.raises(asyncio.QueueFull):
        await queue.send(_message({"userId": "user-1"}))
