"""Notification request queue: Redis Streams or an in-process bounded channel."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from redis.exceptions import ResponseError

logger = logging.getLogger(__name__)

NOTIFICATION_ID_HEADER = "notificationId"
RETRY_COUNT_HEADER = "retryCount"


@dataclass
class QueueMessage:
    """One queued notification request.

    ``key`` is the partition key (the user id), ``headers`` carries the
    pre-assigned notification id when the synchronous accept path made one.
    """

    key: str
    payload: dict
    headers: dict[str, str] = field(default_factory=dict)
    message_id: str | None = None

    @property
    def notification_id(self) -> str | None:
        return self.headers.get(NOTIFICATION_ID_HEADER) or None

    @property
    def retry_count(self) -> int:
        try:
            return int(self.headers.get(RETRY_COUNT_HEADER, 0))
        except (TypeError, ValueError):
            return 0

    def to_fields(self) -> dict[str, str]:
        return {
            "key": self.key,
            "headers": json.dumps(self.headers),
            "payload": json.dumps(self.payload, default=str),
        }

    @classmethod
    def from_fields(cls, message_id: str, fields: dict) -> "QueueMessage":
        return cls(
            key=fields.get("key", ""),
            payload=json.loads(fields.get("payload") or "{}"),
            headers=json.loads(fields.get("headers") or "{}"),
            message_id=message_id,
        )


class NotificationQueue(ABC):
    """Transport for accepted notification requests."""

    def __init__(self, topic: str):
        self.topic = topic

    @property
    def dead_letter_topic(self) -> str:
        return f"{self.topic}.dlq"

    @abstractmethod
    async def send(self, message: QueueMessage) -> str:
        """Append a message; returns the transport message id."""
        ...

    @abstractmethod
    async def receive(self, timeout: float = 1.0) -> QueueMessage | None:
        """Wait up to ``timeout`` seconds for the next message."""
        ...

    @abstractmethod
    async def ack(self, message: QueueMessage) -> None:
        ...

    @abstractmethod
    async def dead_letter(self, message: QueueMessage, reason: str) -> None:
        ...

    async def close(self) -> None:
        return None


class RedisStreamQueue(NotificationQueue):
    """Redis Streams transport consumed through a consumer group."""

    def __init__(self, redis, topic: str, group: str, consumer: str):
        super().__init__(topic)
        self.redis = redis
        self.group = group
        self.consumer = consumer
        self._group_ready = False

    async def _ensure_group(self) -> None:
        if self._group_ready:
            return
        try:
            await self.redis.xgroup_create(self.topic, self.group, id="0", mkstream=True)
            logger.info("Created consumer group %s on %s", self.group, self.topic)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._group_ready = True

    async def send(self, message: QueueMessage) -> str:
        message_id = await self.redis.xadd(self.topic, message.to_fields())
        if isinstance(message_id, bytes):
            message_id = message_id.decode()
        return message_id

    async def receive(self, timeout: float = 1.0) -> QueueMessage | None:
        await self._ensure_group()
        response = await self.redis.xreadgroup(
            self.group,
            self.consumer,
            {self.topic: ">"},
            count=1,
            block=max(1, int(timeout * 1000)),
        )
        if not response:
            return None
        _stream, entries = response[0]
        if not entries:
            return None
        message_id, fields = entries[0]
        return QueueMessage.from_fields(message_id, fields)

    async def ack(self, message: QueueMessage) -> None:
        if message.message_id:
            await self.redis.xack(self.topic, self.group, message.message_id)

    async def dead_letter(self, message: QueueMessage, reason: str) -> None:
        fields = message.to_fields()
        fields["reason"] = reason
        await self.redis.xadd(self.dead_letter_topic, fields)


class LocalQueue(NotificationQueue):
    """Bounded in-process channel for local mode and tests."""

    def __init__(self, topic: str, maxsize: int = 1000):
        super().__init__(topic)
        self._queue: asyncio.Queue[QueueMessage] = asyncio.Queue(maxsize=maxsize)
        self._counter = 0
        self.dead_letters: list[tuple[QueueMessage, str]] = []

    async def send(self, message: QueueMessage) -> str:
        self._counter += 1
        message.message_id = f"local-{self._counter}"
        # Raises asyncio.QueueFull instead of blocking the accept path
        self._queue.put_nowait(message)
        return message.message_id

    async def receive(self, timeout: float = 1.0) -> QueueMessage | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def ack(self, message: QueueMessage) -> None:
        self._queue.task_done()

    async def dead_letter(self, message: QueueMessage, reason: str) -> None:
        logger.warning("Dead-lettered message %s: %s", message.message_id, reason)
        self.dead_letters.append((message, reason))

    def qsize(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every message sent so far has been acknowledged."""
        await self._queue.join()
