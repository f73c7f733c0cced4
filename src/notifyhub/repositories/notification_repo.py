"""Notification repository: point lookups, status transitions and filtered scans."""

from datetime import datetime

from sqlalchemy import delete, func, select, update

from notifyhub.db.base import utcnow
from notifyhub.db.models.notification import NotificationRow
from notifyhub.models.notification import NotificationFilter
from notifyhub.repositories.base import BaseRepository
from notifyhub.services import filter_query


class NotificationRepository(BaseRepository[NotificationRow]):
    model_class = NotificationRow
    pk_field = "notification_id"

    async def list_unsent(self, user_id: str) -> list[NotificationRow]:
        """Backlog for a user: not yet sent, not disabled, oldest first."""
        stmt = (
            select(NotificationRow)
            .where(
                NotificationRow.user_id == user_id,
                NotificationRow.sent == False,
                NotificationRow.disabled == False,
            )
            .order_by(NotificationRow.created_at.asc(), NotificationRow.notification_id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_filtered(self, user_id: str, filter: NotificationFilter) -> list[NotificationRow]:
        stmt = filter_query.build_select(user_id, filter)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_filtered(self, user_id: str, filter: NotificationFilter) -> int:
        stmt = filter_query.build_count(user_id, filter)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_unread(self, user_id: str) -> int:
        stmt = select(func.count(NotificationRow.notification_id)).where(
            NotificationRow.user_id == user_id,
            NotificationRow.read == False,
            NotificationRow.disabled == False,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def mark_sent(self, notification_id: str, sent_at: datetime | None = None) -> bool:
        """Flip sent false->true. Returns False when nothing changed."""
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.notification_id == notification_id,
                NotificationRow.sent == False,
            )
            .values(sent=True, sent_at=sent_at or utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_read(self, notification_id: str, read_at: datetime | None = None) -> bool:
        """Flip read false->true. Returns False when nothing changed."""
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.notification_id == notification_id,
                NotificationRow.read == False,
            )
            .values(read=True, read_at=read_at or utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_all_read(self, user_id: str, read_at: datetime | None = None) -> int:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.user_id == user_id,
                NotificationRow.disabled == False,
                NotificationRow.read == False,
            )
            .values(read=True, read_at=read_at or utcnow())
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def disable(self, notification_id: str) -> bool:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.notification_id == notification_id,
                NotificationRow.disabled == False,
            )
            .values(disabled=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def disable_all(self, user_id: str) -> int:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.user_id == user_id,
                NotificationRow.disabled == False,
            )
            .values(disabled=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def purge_disabled(self, user_id: str) -> int:
        """Hard-delete a user's notifications that were already soft-deleted."""
        stmt = delete(NotificationRow).where(
            NotificationRow.user_id == user_id,
            NotificationRow.disabled == True,
        )
        result = await self.session.execute(stmt)
        return result.rowcount
