"""One live session per user, last subscriber wins.

The registry maps a user id to the handle of that user's current session.
All mutations are plain synchronous methods with no await inside, so on the
event loop each one runs to completion without interleaving: a superseded
session is signalled before its replacement becomes visible under the key.
"""

import asyncio
import itertools
import logging

from notifyhub.models.enums import StreamOutcome

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionHandle:
    """Cancellation handle for one live subscription."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.session_id = next(_session_ids)
        self._event = asyncio.Event()
        self.reason: StreamOutcome | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: StreamOutcome) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self) -> StreamOutcome | None:
        await self._event.wait()
        return self.reason

    def __repr__(self) -> str:
        return f"SessionHandle(user_id={self.user_id!r}, session_id={self.session_id}, cancelled={self.cancelled})"


class SessionManager:
    """Registry of active live sessions keyed by user id."""

    def __init__(self):
        self._sessions: dict[str, SessionHandle] = {}

    def subscribe(self, user_id: str) -> SessionHandle:
        """Register a new session for ``user_id``, preempting any existing one."""
        previous = self._sessions.get(user_id)
        if previous is not None:
            logger.debug("Closing previous live session for user %s (new session requested)", user_id)
            previous.cancel(StreamOutcome.SUPERSEDED)
        handle = SessionHandle(user_id)
        self._sessions[user_id] = handle
        logger.debug("Created live session %d for user %s", handle.session_id, user_id)
        return handle

    def unsubscribe(self, user_id: str) -> bool:
        """Terminate and forget the user's session. Returns False if there was none."""
        handle = self._sessions.pop(user_id, None)
        if handle is None:
            return False
        logger.debug("Closing live session %d for user %s on request", handle.session_id, user_id)
        handle.cancel(StreamOutcome.UNSUBSCRIBED)
        return True

    def release(self, handle: SessionHandle) -> None:
        """Drop ``handle`` if it is still the current session for its user."""
        if self._sessions.get(handle.user_id) is handle:
            del self._sessions[handle.user_id]
            logger.debug("Removed live session %d for user %s", handle.session_id, handle.user_id)

    def current(self, user_id: str) -> SessionHandle | None:
        return self._sessions.get(user_id)

    def is_active(self, user_id: str) -> bool:
        return user_id in self._sessions

    def active_count(self) -> int:
        return len(self._sessions)
