"""Pydantic models for notification templates."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TemplateParam(BaseModel):
    """Declared template parameter."""

    key: str = Field(..., min_length=1)
    type: str = "string"
    required: bool = False
    description: str | None = None


class Translation(BaseModel):
    """Subject/body text of a template in one language."""

    subject: str | None = None
    body: str | None = Field(None, validation_alias=AliasChoices("body", "content"))


class TemplateRequest(BaseModel):
    """Create/update body for a template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    channel: str | None = None
    active: bool = True
    params: list[TemplateParam] = Field(default_factory=list)
    translations: dict[str, Translation] = Field(default_factory=dict)
    created_by: str | None = None


class Template(BaseModel):
    """A stored template, as resolved for rendering and returned by the API."""

    id: str
    name: str
    channel: str | None = None
    active: bool = True
    params: list[TemplateParam] = Field(default_factory=list)
    translations: dict[str, Translation] = Field(default_factory=dict)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Template":
        return cls(
            id=row.template_id,
            name=row.name,
            channel=row.channel,
            active=row.active,
            params=row.params or [],
            translations=row.translations or {},
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class TemplateIdResponse(BaseModel):
    template_id: str
