"""Change feed of newly inserted notifications.

Writers publish each record after it is committed; live streams watch the
feed for one user. The Redis implementation keeps one pub/sub channel per
user so the user filter runs on the server side.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from notifyhub.models.notification import NotificationRecord

logger = logging.getLogger(__name__)


class ChangeFeed(ABC):
    @abstractmethod
    async def publish(self, record: NotificationRecord) -> None:
        """Announce an inserted record."""
        ...

    @abstractmethod
    def watch(self, user_id: str):
        """Async context manager yielding an async iterator of inserted records for ``user_id``.

        The subscription is live once the context has been entered, so records
        published after that point are never missed.
        """
        ...


class RedisChangeFeed(ChangeFeed):
    """Change feed on Redis pub/sub."""

    def __init__(self, redis, prefix: str = "notifyhub:notifications", poll_timeout: float = 1.0):
        self.redis = redis
        self.prefix = prefix
        self.poll_timeout = poll_timeout

    def channel_for(self, user_id: str) -> str:
        return f"{self.prefix}:user:{user_id}"

    async def publish(self, record: NotificationRecord) -> None:
        event = json.dumps({"operation": "insert", "document": record.model_dump(mode="json")})
        await self.redis.publish(self.channel_for(record.user_id), event)

    @asynccontextmanager
    async def watch(self, user_id: str):
        channel = self.channel_for(user_id)
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(channel)
        logger.debug("Change feed subscribed (channel=%s)", channel)
        try:
            yield self._iterate(pubsub)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            logger.debug("Change feed unsubscribed (channel=%s)", channel)

    async def _iterate(self, pubsub) -> AsyncIterator[NotificationRecord]:
        while True:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=self.poll_timeout
            )
            if not message or message.get("type") != "message":
                continue
            data = message.get("data", "")
            if isinstance(data, bytes):
                data = data.decode()
            event = json.loads(data)
            if event.get("operation") != "insert":
                continue
            yield NotificationRecord.model_validate(event["document"])


class LocalChangeFeed(ChangeFeed):
    """In-process fan-out to per-watcher queues (local mode and tests)."""

    def __init__(self):
        self._watchers: dict[str, set[asyncio.Queue]] = {}

    def watcher_count(self, user_id: str) -> int:
        return len(self._watchers.get(user_id, ()))

    async def publish(self, record: NotificationRecord) -> None:
        for queue in list(self._watchers.get(record.user_id, ())):
            queue.put_nowait(record.model_copy(deep=True))

    @asynccontextmanager
    async def watch(self, user_id: str):
        queue: asyncio.Queue[NotificationRecord] = asyncio.Queue()
        self._watchers.setdefault(user_id, set()).add(queue)
        try:
            yield self._iterate(queue)
        finally:
            watchers = self._watchers.get(user_id)
            if watchers is not None:
                watchers.discard(queue)
                if not watchers:
                    del self._watchers[user_id]

    async def _iterate(self, queue: asyncio.Queue) -> AsyncIterator[NotificationRecord]:
        while True:
            yield await queue.get()
