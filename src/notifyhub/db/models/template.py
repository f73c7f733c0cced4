"""Template table."""

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from notifyhub.db.base import Base, TimestampMixin


class TemplateRow(Base, TimestampMixin):
    __tablename__ = "templates"

    template_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    channel: Mapped[str | None] = mapped_column(String(50), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # [{"key", "type", "required", "description"}]
    params: Mapped[list | None] = mapped_column(JSON, nullable=True)
    # {lang: {"subject", "body"}}
    translations: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
