"""Live delivery: backlog replay followed by change-feed tailing.

For one user and language the merger emits, in order:

1. every persisted notification that is neither sent nor disabled, oldest
   first, marking each as sent as it goes out;
2. records arriving on the change feed for that user, with the same rule.

The stream ends without error when the user's session is superseded or
unsubscribed, when nothing has been emitted for ``idle_timeout`` seconds, or
when ``max_duration`` seconds have passed since it opened. ``stream.outcome``
says which. Change-feed faults only stop live updates.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack
from typing import Any

from notifyhub.config import settings
from notifyhub.models.enums import StreamOutcome
from notifyhub.models.notification import NotificationRecord, NotificationView
from notifyhub.repositories.notification_repo import NotificationRepository
from notifyhub.services.rendering import to_view
from notifyhub.streaming.change_feed import ChangeFeed
from notifyhub.streaming.sessions import SessionHandle, SessionManager

logger = logging.getLogger(__name__)

_VALUE = "value"
_CANCELLED = "cancelled"
_TIMEOUT = "timeout"


async def _race(aw, handle: SessionHandle, timeout: float) -> tuple[str, Any]:
    """Wait for ``aw``, the session's cancellation, or ``timeout``, whichever is first.

    Cancellation wins over a value that completes at the same moment.
    """
    task = asyncio.ensure_future(aw)
    cancel_task = asyncio.ensure_future(handle.wait())
    try:
        done, _ = await asyncio.wait(
            {task, cancel_task},
            timeout=max(0.0, timeout),
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        for pending in (task, cancel_task):
            if not pending.done():
                pending.cancel()
    if cancel_task in done:
        return _CANCELLED, handle.reason
    if task in done:
        return _VALUE, task.result()
    return _TIMEOUT, None


class NotificationStream:
    """Async iterator of ``NotificationView`` for one live session."""

    def __init__(self, merger: "LiveDeliveryMerger", handle: SessionHandle, language: str):
        self.merger = merger
        self.handle = handle
        self.user_id = handle.user_id
        self.language = language
        self.outcome: StreamOutcome | None = None
        self._events: AsyncIterator[NotificationView] | None = None

    def __aiter__(self) -> AsyncIterator[NotificationView]:
        if self._events is None:
            self._events = self.merger._run(self)
        return self._events

    async def aclose(self) -> None:
        if self._events is not None:
            await self._events.aclose()
        else:
            self.merger.sessions.release(self.handle)
        if self.outcome is None:
            self.outcome = StreamOutcome.CLOSED

    async def __aenter__(self) -> "NotificationStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class LiveDeliveryMerger:
    def __init__(
        self,
        session_factory,
        change_feed: ChangeFeed,
        sessions: SessionManager,
        max_duration: float | None = None,
        idle_timeout: float | None = None,
        default_language: str | None = None,
    ):
        self.session_factory = session_factory
        self.change_feed = change_feed
        self.sessions = sessions
        self.max_duration = max_duration if max_duration is not None else settings.sse_max_connection_duration
        self.idle_timeout = idle_timeout if idle_timeout is not None else settings.sse_connection_timeout
        self.default_language = default_language or settings.default_language

    def stream(self, user_id: str, language: str) -> NotificationStream:
        """Open the user's live session (preempting any older one) and return its stream."""
        handle = self.sessions.subscribe(user_id)
        logger.debug(
            "Started live stream for user %s in language %s (max duration: %ss, timeout: %ss)",
            user_id, language, self.max_duration, self.idle_timeout,
        )
        return NotificationStream(self, handle, language)

    async def _load_backlog(self, user_id: str) -> list[NotificationRecord]:
        async with self.session_factory() as session:
            rows = await NotificationRepository(session).list_unsent(user_id)
            return [NotificationRecord.from_row(row) for row in rows]

    async def _mark_sent(self, notification_id: str) -> bool:
        async with self.session_factory() as session:
            changed = await NotificationRepository(session).mark_sent(notification_id)
            await session.commit()
        if changed:
            logger.debug("Marked notification as sent via live stream: %s", notification_id)
        return changed

    async def _tail(self, feed: AsyncIterator[NotificationRecord], out: asyncio.Queue, user_id: str) -> None:
        try:
            async for record in feed:
                if record.user_id != user_id or record.disabled or record.sent:
                    continue
                logger.debug("Change feed: new notification for user %s: %s", user_id, record.id)
                out.put_nowait(record)
        except Exception as exc:
            logger.debug("Change feed error for user %s, no further live updates: %s", user_id, exc)

    async def _run(self, stream: NotificationStream) -> AsyncIterator[NotificationView]:
        loop = asyncio.get_running_loop()
        handle = stream.handle
        user_id = stream.user_id
        opened_at = loop.time()
        deadline = opened_at + self.max_duration
        last_emit = opened_at
        emitted: set[str] = set()
        live: asyncio.Queue[NotificationRecord] = asyncio.Queue()
        tailer: asyncio.Task | None = None

        async with AsyncExitStack() as stack:
            try:
                # Watch before reading the backlog so nothing inserted in between is lost
                try:
                    feed = await stack.enter_async_context(self.change_feed.watch(user_id))
                    tailer = asyncio.create_task(self._tail(feed, live, user_id))
                except Exception as exc:
                    logger.debug("Change feed unavailable for user %s, backlog only: %s", user_id, exc)

                kind, value = await _race(self._load_backlog(user_id), handle, self.idle_timeout)
                if kind == _CANCELLED:
                    stream.outcome = value
                    return
                if kind == _TIMEOUT:
                    stream.outcome = StreamOutcome.TIMEOUT
                    return

                for record in value:
                    if handle.cancelled:
                        stream.outcome = handle.reason
                        return
                    if record.id in emitted or not await self._mark_sent(record.id):
                        continue
                    emitted.add(record.id)
                    last_emit = loop.time()
                    logger.debug("Sent backlog notification %s to user %s", record.id, user_id)
                    yield to_view(record, stream.language, self.default_language)

                while True:
                    now = loop.time()
                    if now >= deadline:
                        logger.debug(
                            "Live stream for user %s reached max duration (%ss), terminating",
                            user_id, self.max_duration,
                        )
                        stream.outcome = StreamOutcome.MAX_DURATION
                        return
                    idle_left = last_emit + self.idle_timeout - now
                    max_left = deadline - now
                    kind, value = await _race(live.get(), handle, min(idle_left, max_left))
                    if kind == _CANCELLED:
                        stream.outcome = value
                        return
                    if kind == _TIMEOUT:
                        if max_left <= idle_left:
                            logger.debug(
                                "Live stream for user %s reached max duration (%ss), terminating",
                                user_id, self.max_duration,
                            )
                            stream.outcome = StreamOutcome.MAX_DURATION
                            return
                        logger.warning("Live stream timeout for user %s after %ss", user_id, self.idle_timeout)
                        stream.outcome = StreamOutcome.TIMEOUT
                        return

                    record = value
                    if record.id in emitted or not await self._mark_sent(record.id):
                        continue
                    emitted.add(record.id)
                    last_emit = loop.time()
                    logger.debug("Sent live notification %s to user %s", record.id, user_id)
                    yield to_view(record, stream.language, self.default_language)
            finally:
                if tailer is not None:
                    tailer.cancel()
                    await asyncio.gather(tailer, return_exceptions=True)
                self.sessions.release(handle)
                if stream.outcome is None:
                    stream.outcome = StreamOutcome.CLOSED
                logger.debug("Live stream for user %s ended (%s)", user_id, stream.outcome)
