"""Template store operations."""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from notifyhub.errors.exceptions import ConflictError, TemplateNotFoundError
from notifyhub.models.template import Template, TemplateRequest
from notifyhub.repositories.template_repo import TemplateRepository
from notifyhub.services.id_generator import generate_id

logger = logging.getLogger(__name__)


def _row_fields(request: TemplateRequest) -> dict:
    return {
        "name": request.name,
        "channel": request.channel,
        "active": request.active,
        "params": [param.model_dump() for param in request.params],
        "translations": {
            lang: translation.model_dump() for lang, translation in request.translations.items()
        },
    }


class TemplateService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = TemplateRepository(session)

    async def list_templates(self, active_only: bool = False, name: str | None = None) -> list[Template]:
        rows = await self.repo.list_all(active_only=active_only, name=name)
        return [Template.from_row(row) for row in rows]

    async def get_template(self, template_id: str) -> Template:
        row = await self.repo.get(template_id)
        if row is None:
            raise TemplateNotFoundError(template_id)
        return Template.from_row(row)

    async def create_template(self, request: TemplateRequest) -> str:
        template_id = request.id or generate_id("tpl_")
        if await self.repo.exists(template_id):
            raise ConflictError(f"Template '{template_id}' already exists")
        await self.repo.create(
            template_id=template_id,
            created_by=request.created_by,
            **_row_fields(request),
        )
        await self.session.commit()
        logger.info("Created template %s (%s)", template_id, request.name)
        return template_id

    async def update_template(self, template_id: str, request: TemplateRequest) -> Template:
        """Replace a template's content; authorship and creation time are kept.

        Notifications rendered earlier keep their cached content.
        """
        row = await self.repo.get(template_id)
        if row is None:
            raise TemplateNotFoundError(template_id)
        await self.repo.update(row, updated_at=datetime.now(timezone.utc), **_row_fields(request))
        await self.session.commit()
        logger.info("Updated template %s", template_id)
        return Template.from_row(row)
