"""Template repository."""

from sqlalchemy import select

from notifyhub.db.models.template import TemplateRow
from notifyhub.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[TemplateRow]):
    model_class = TemplateRow
    pk_field = "template_id"

    async def list_all(self, active_only: bool = False, name: str | None = None) -> list[TemplateRow]:
        stmt = select(TemplateRow)
        if active_only:
            stmt = stmt.where(TemplateRow.active == True)
        if name:
            stmt = stmt.where(TemplateRow.name == name)
        stmt = stmt.order_by(TemplateRow.created_at.asc(), TemplateRow.template_id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
