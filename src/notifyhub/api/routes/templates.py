"""Template store routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from notifyhub.dependencies import get_db
from notifyhub.models.template import Template, TemplateIdResponse, TemplateRequest
from notifyhub.services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("", response_model=list[Template])
async def list_templates(
    active_only: bool = Query(False),
    name: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[Template]:
    return await TemplateService(db).list_templates(active_only=active_only, name=name)


@router.post("", status_code=201, response_model=TemplateIdResponse)
async def create_template(
    request: TemplateRequest,
    db: AsyncSession = Depends(get_db),
) -> TemplateIdResponse:
    template_id = await TemplateService(db).create_template(request)
    return TemplateIdResponse(template_id=template_id)


@router.get("/{template_id}", response_model=Template)
async def get_template(template_id: str, db: AsyncSession = Depends(get_db)) -> Template:
    return await TemplateService(db).get_template(template_id)


@router.put("/{template_id}", response_model=Template)
async def update_template(
    template_id: str,
    request: TemplateRequest,
    db: AsyncSession = Depends(get_db),
) -> Template:
    """Replace a template. Already rendered notifications are unaffected."""
    return await TemplateService(db).update_template(template_id, request)
